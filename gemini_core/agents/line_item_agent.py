"""发票明细分类分析。

基于 RequestOrchestrator 的两个入口（send / decode_as）实现：
判断发票明细是否属于房屋装修类采购，并给每条明细归类。
"""

from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from gemini_core.agents.orchestrator import RequestOrchestrator
from gemini_core.domain.exceptions import BusinessError
from gemini_core.domain.invoice import Invoice
from gemini_core.infrastructure.logging.logger import logger
from gemini_core.prompts import PromptSource

TEMPLATE_KEY = "line_item_analysis"
OPERATION = "LineItemAnalysis"

HOME_IMPROVEMENT_CATEGORIES = [
    "Plumbing",
    "Electrical",
    "HVAC",
    "Flooring",
    "Walls & Ceilings",
    "Windows & Doors",
    "Roofing",
    "Kitchen",
    "Bathroom",
    "Structural",
    "Outdoor",
    "Tools & Equipment",
    "General Supplies",
    "Professional Services",
    "Non-Home Improvement",
]


class LineItemDetail(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    description: str = ""
    interpreted_as: str = Field(default="", alias="interpretedAs")
    category: str = ""
    is_home_improvement: bool = Field(default=False, alias="isHomeImprovement")
    confidence: float = 0.0
    notes: str = ""


class LineItemAnalysisResponse(BaseModel):
    """模型返回的 JSON 结构（字段名为 camelCase）。"""

    model_config = ConfigDict(populate_by_name=True)

    is_home_improvement: bool = Field(alias="isHomeImprovement")
    confidence: float = 0.0
    summary: str = ""
    primary_purpose: str = Field(default="", alias="primaryPurpose")
    categories: List[str] = Field(default_factory=list)
    line_item_analysis: List[LineItemDetail] = Field(default_factory=list, alias="lineItemAnalysis")


@dataclass
class LineItemAnalysisResult:
    success: bool = False
    error_message: str = ""
    is_home_improvement: bool = False
    confidence: float = 0.0
    summary: str = ""
    primary_purpose: str = ""
    categories: List[str] = field(default_factory=list)
    line_item_details: List[LineItemDetail] = field(default_factory=list)
    home_improvement_percentage: float = 0.0
    raw_response: str = ""


class LineItemAnalyzer:
    def __init__(self, orchestrator: RequestOrchestrator, prompt_source: Optional[PromptSource] = None):
        self._orchestrator = orchestrator
        self._prompts = prompt_source or PromptSource()

    def analyze(self, invoice: Invoice) -> LineItemAnalysisResult:
        """分析发票明细。失败时返回 success=False 的结果，不向上抛异常。"""

        logger.info("Analyzing line items", extra={"extra": {"file_name": invoice.file_name}})
        result = LineItemAnalysisResult()
        if not invoice.line_items:
            logger.warning("No line items available for analysis", extra={"extra": {"file_name": invoice.file_name}})
            result.error_message = "No line items available for analysis"
            return result

        prompt = self.build_prompt(invoice)
        try:
            response = self._orchestrator.send(prompt, operation=OPERATION, use_history=False)
        except BusinessError as e:
            logger.error(
                "Line item analysis failed",
                extra={"extra": {"file_name": invoice.file_name, "code": e.code, "error": e.message}},
            )
            result.error_message = f"Error analyzing line items: {e.message}"
            return result

        result.raw_response = response
        decoded = self._orchestrator.decode_as(response, LineItemAnalysisResponse)
        if not decoded.ok:
            result.error_message = "Failed to parse analysis response"
            return result

        self._apply(decoded.value, result)
        logger.info(
            "Line item analysis completed",
            extra={"extra": {"file_name": invoice.file_name, "categories": result.categories}},
        )
        return result

    def build_prompt(self, invoice: Invoice) -> str:
        context = build_invoice_context(invoice)
        try:
            prompt = self._prompts.get_prompt(
                TEMPLATE_KEY,
                {"context": context, "vendor_name": invoice.vendor_name or "Unknown"},
            )
            if prompt and prompt.strip():
                return prompt
        except (KeyError, OSError, ValueError) as e:
            logger.warning("Prompt template unavailable", extra={"extra": {"template": TEMPLATE_KEY, "error": str(e)}})
        logger.warning("Using fallback prompt for line item analysis")
        return default_prompt(context)

    @staticmethod
    def _apply(response: LineItemAnalysisResponse, result: LineItemAnalysisResult) -> None:
        result.success = True
        result.is_home_improvement = response.is_home_improvement
        result.confidence = response.confidence
        result.summary = response.summary
        result.primary_purpose = response.primary_purpose
        result.categories = list(response.categories)
        result.line_item_details = list(response.line_item_analysis)
        if result.line_item_details:
            flagged = sum(1 for item in result.line_item_details if item.is_home_improvement)
            result.home_improvement_percentage = flagged / len(result.line_item_details)


def build_invoice_context(invoice: Invoice) -> str:
    lines = []
    if invoice.vendor_name:
        lines.append(f"Vendor: {invoice.vendor_name}")
    if invoice.invoice_date:
        lines.append(f"Invoice Date: {invoice.invoice_date:%Y-%m-%d}")
    if invoice.invoice_number:
        lines.append(f"Invoice Number: {invoice.invoice_number}")
    lines.append(f"Total Amount: {invoice.total_amount:.2f}")
    lines.append("")
    lines.append("Line Items:")
    for item in invoice.line_items:
        lines.append(f"- {item.description}")
        lines.append(
            f"  Quantity: {item.quantity}, Unit Price: {item.unit_price:.2f}, Total: {item.total_price:.2f}"
        )
    return "\n".join(lines)


def default_prompt(context: str) -> str:
    categories = "\n".join(f"- {c}" for c in HOME_IMPROVEMENT_CATEGORIES)
    return (
        "### LINE ITEM ANALYSIS ###\n"
        "You are an expert in analyzing construction and home improvement purchases.\n"
        "Analyze the line items from an invoice to determine what was purchased and categorize each item.\n\n"
        f"### INVOICE CONTEXT ###\n{context}\n\n"
        f"### HOME IMPROVEMENT CATEGORIES ###\n{categories}\n\n"
        "### OUTPUT FORMAT ###\n"
        "Respond with ONLY a JSON object with the keys isHomeImprovement, confidence, summary, "
        "primaryPurpose, categories and lineItemAnalysis (a list of objects with description, "
        "interpretedAs, category, isHomeImprovement, confidence and notes)."
    )
