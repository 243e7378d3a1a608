import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor as RealPool
from unittest.mock import patch

import pytest

from gemini_core.agents.request_builder import RequestBuilder, encode_image
from gemini_core.domain.models import ImagePart, PageImage, TextPart


def _pages(n):
    return [PageImage.from_bytes(f"page-{i}".encode(), page_number=i) for i in range(n)]


def test_prompt_only_yields_single_text_part():
    parts = RequestBuilder(max_workers=4).build_parts("Categorize this purchase")
    assert parts == [TextPart(content="Categorize this purchase")]


def test_images_without_bytes_are_skipped():
    images = [
        PageImage(image_data=b"", page_number=1, base64_encoded="ignored"),
        PageImage.from_bytes(b"real", page_number=2),
    ]
    parts = RequestBuilder(max_workers=4).build_parts("p", images)
    assert len(parts) == 2
    assert isinstance(parts[0], TextPart)
    assert parts[1] == ImagePart(mime_type="image/png", data=images[1].base64_encoded)


@pytest.mark.parametrize("seed", range(5))
def test_concurrent_encoding_preserves_input_order(seed):
    rng = random.Random(seed)
    images = _pages(8)
    delays = {img.page_number: rng.uniform(0, 0.02) for img in images}

    def slow_encode(image):
        time.sleep(delays[image.page_number])
        return encode_image(image)

    parts = RequestBuilder(max_workers=8, encoder=slow_encode).build_parts("p", images)

    assert isinstance(parts[0], TextPart)
    assert [p.data for p in parts[1:]] == [img.base64_encoded for img in images]


def test_order_kept_when_later_pages_finish_first():
    images = _pages(4)
    barrier = threading.Barrier(len(images), timeout=5)
    completed = []
    lock = threading.Lock()

    def reversed_encode(image):
        # 所有任务同时开始，页码越大越早结束
        barrier.wait()
        time.sleep(0.02 * (len(images) - image.page_number))
        with lock:
            completed.append(image.page_number)
        return encode_image(image)

    parts = RequestBuilder(max_workers=4, encoder=reversed_encode).build_parts("p", images)

    assert sorted(completed) == [0, 1, 2, 3]
    assert [p.data for p in parts[1:]] == [img.base64_encoded for img in images]


def test_single_image_does_not_create_pool():
    image = _pages(1)[0]
    with patch("gemini_core.agents.request_builder.ThreadPoolExecutor") as mock_pool:
        parts = RequestBuilder(max_workers=4).build_parts("p", [image])
        mock_pool.assert_not_called()

    pooled = RequestBuilder(max_workers=4).build_parts("p", [image, _pages(2)[1]])
    assert parts[1] == pooled[1]


def test_single_eligible_image_among_empty_ones_uses_fast_path():
    images = [PageImage(image_data=b"", page_number=0), _pages(2)[1]]
    with patch("gemini_core.agents.request_builder.ThreadPoolExecutor") as mock_pool:
        parts = RequestBuilder(max_workers=4).build_parts("p", images)
        mock_pool.assert_not_called()
    assert len(parts) == 2


def test_pool_size_is_bounded():
    images = _pages(10)
    seen = []

    def recording_pool(*args, **kwargs):
        seen.append(kwargs.get("max_workers"))
        return RealPool(*args, **kwargs)

    with patch("gemini_core.agents.request_builder.ThreadPoolExecutor", side_effect=recording_pool):
        parts = RequestBuilder(max_workers=3).build_parts("p", images)

    assert seen == [3]
    assert len(parts) == 11


def test_zero_workers_rejected():
    with pytest.raises(ValueError):
        RequestBuilder(max_workers=0)
