"""请求内容组装。

把 prompt 与可选的页面图片组装成有序的 Part 列表：
第一个永远是 TextPart，后面按输入顺序跟随 ImagePart。

- 没有字节内容的图片直接跳过。
- 只剩一张图片时在当前线程内编码，不创建线程池。
- 多张图片时每张图片一个任务，放进有上限的线程池，全部完成后再返回；
  无论哪个任务先结束，结果顺序都与输入顺序一致。
"""

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence

from gemini_core.config.settings import settings
from gemini_core.domain.models import IMAGE_MIME_TYPE, ImagePart, PageImage, Part, TextPart
from gemini_core.infrastructure.logging.logger import logger


ImageEncoder = Callable[[PageImage], ImagePart]


def encode_image(image: PageImage) -> ImagePart:
    """把单页图片转换为 ImagePart，直接使用图片来源预先计算好的 base64。"""

    logger.debug(
        "Encoded page image",
        extra={"extra": {"page_number": image.page_number, "original_size": len(image.image_data)}},
    )
    return ImagePart(mime_type=IMAGE_MIME_TYPE, data=image.base64_encoded)


class RequestBuilder:
    def __init__(self, max_workers: Optional[int] = None, encoder: ImageEncoder = encode_image):
        if max_workers is None:
            max_workers = settings.image_workers
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self._max_workers = max_workers
        self._encoder = encoder

    def build_parts(self, prompt: str, images: Optional[Sequence[PageImage]] = None) -> List[Part]:
        logger.debug("Building request parts", extra={"extra": {"prompt_length": len(prompt or "")}})
        parts: List[Part] = [TextPart(content=prompt)]
        if images:
            parts.extend(self.encode_images(images))
        return parts

    def encode_images(self, images: Sequence[PageImage]) -> List[ImagePart]:
        eligible = [img for img in images if img is not None and img.has_data]
        if not eligible:
            return []

        started = time.perf_counter()
        if len(eligible) == 1:
            encoded = [self._encoder(eligible[0])]
        else:
            workers = min(len(eligible), self._max_workers)
            # map 按提交顺序返回结果，与完成顺序无关
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="gemini-image") as executor:
                encoded = list(executor.map(self._encoder, eligible))

        logger.info(
            "Processed page images",
            extra={"extra": {
                "count": len(encoded),
                "skipped": len(images) - len(eligible),
                "elapsed_ms": round((time.perf_counter() - started) * 1000.0, 1),
            }},
        )
        return encoded
