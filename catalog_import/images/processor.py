"""
Image Processor

Downloads listing images, resizes and re-encodes them with Pillow and
uploads the result to the asset store.

Images are processed on a bounded thread pool. A failed image is logged
and recorded; it never fails the batch.
"""

from __future__ import annotations

import hashlib
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as BatchTimeout
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import requests
from PIL import Image

from ..common.errors import CatalogImportError, ImagePartialFailure
from ..models import ProcessedImage, UploadedAsset
from ..sources.url_utils import is_blocked_host

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ('jpeg', 'jpg', 'png', 'webp', 'gif')
MAX_DOWNLOAD_BYTES = 20 * 1024 * 1024
DOWNLOAD_CHUNK_SIZE = 64 * 1024
HEADER_RANGE = 'bytes=0-32767'

_CONTENT_TYPES = {
    'WEBP': ('webp', 'image/webp'),
    'JPEG': ('jpg', 'image/jpeg'),
    'PNG': ('png', 'image/png'),
}

_DEFAULT_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36',
    'Accept': 'image/avif,image/webp,image/apng,image/*,*/*;q=0.8',
}

# Per-item errors that are recorded as failures instead of propagating
_ITEM_ERRORS = (
    requests.RequestException,
    OSError,
    ValueError,
    Image.DecompressionBombError,
    CatalogImportError,
)

ProgressCallback = Callable[[int, int, bool], None]


class AssetStore(ABC):
    """Binary asset store the processed images are uploaded to."""

    @abstractmethod
    def upload_asset(self, data: bytes, filename: str, content_type: str) -> UploadedAsset:
        """
        Upload one binary.

        Raises:
            AssetUploadError: If the store rejects the upload
        """


@dataclass
class ImageProcessingOptions:
    """Image pipeline settings (see config/image_processing.yaml)."""
    max_width: int = 2000
    max_height: int = 2000
    quality: int = 85
    output_format: str = 'WEBP'
    max_images: int = 10
    concurrency: int = 3
    request_timeout: float = 30
    batch_timeout: Optional[float] = None
    trusted_image_hosts: Tuple[str, ...] = ('alicdn.com', 'aliexpress.com')

    def __post_init__(self):
        self.output_format = self.output_format.upper()
        if self.output_format not in _CONTENT_TYPES:
            raise ValueError(f"Unsupported output format: {self.output_format}")
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1 (got {self.concurrency})")
        if self.max_images < 0:
            raise ValueError(f"max_images cannot be negative (got {self.max_images})")
        self.trusted_image_hosts = tuple(self.trusted_image_hosts)

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> 'ImageProcessingOptions':
        """Build options from a loaded settings dict, ignoring unknown keys."""
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in settings.items() if k in known})


@dataclass
class ImageFailure:
    """One image that did not make it through the pipeline."""
    index: int
    source_url: str
    reason: str

    def to_error(self) -> ImagePartialFailure:
        return ImagePartialFailure(
            f"Image {self.index} failed: {self.reason}",
            {'index': self.index, 'source_url': self.source_url},
        )


@dataclass
class ImageBatchResult:
    """Processed images (input order, primary first) and per-item failures."""
    images: List[ProcessedImage] = field(default_factory=list)
    failures: List[ImageFailure] = field(default_factory=list)
    requested: int = 0

    @property
    def primary(self) -> Optional[ProcessedImage]:
        return self.images[0] if self.images else None


def asset_filename(product_id: str, index: int, extension: str = 'webp') -> str:
    """
    Deterministic asset filename for an image of a product.

    Example:
        >>> asset_filename("1005001", 0)
        '1005001-0-1a2b3c4d.webp'
    """
    digest = hashlib.md5(f"{product_id}-{index}".encode('utf-8')).hexdigest()[:8]
    return f"{product_id}-{index}-{digest}.{extension}"


class ImageProcessor:
    """
    Parallel image pipeline: download, resize, re-encode, upload.

    Usage:
        processor = ImageProcessor(content_store, ImageProcessingOptions(concurrency=3))
        images = processor.process_all(listing.images, listing.product_id)
    """

    def __init__(
        self,
        asset_store: AssetStore,
        options: Optional[ImageProcessingOptions] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the processor.

        Args:
            asset_store: Where re-encoded images are uploaded
            options: Pipeline settings (defaults if omitted)
            session: Shared requests session for downloads
        """
        self.asset_store = asset_store
        self.options = options or ImageProcessingOptions()
        self.session = session or requests.Session()
        self.session.headers.update(_DEFAULT_HEADERS)

    def process_all(
        self,
        urls: Sequence[str],
        product_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[ProcessedImage]:
        """Process a batch and return only the surviving images."""
        return self.process_batch(urls, product_id, on_progress).images

    def process_batch(
        self,
        urls: Sequence[str],
        product_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ImageBatchResult:
        """
        Process up to max_images URLs with at most `concurrency` in flight.

        Empty entries are skipped. URLs that fail rejection_reason() are
        recorded as failures without being requested. Indexes are positions
        in `urls`.

        Args:
            urls: Source image URLs in display order
            product_id: Source product id (used in asset filenames)
            on_progress: Called as on_progress(done, total, ok) after each item

        Returns:
            ImageBatchResult ordered by input index; the lowest surviving
            index is marked primary.
        """
        candidates = [(index, url) for index, url in enumerate(urls) if url][:self.options.max_images]
        total = len(candidates)
        result = ImageBatchResult(requested=total)

        selected = []
        done = 0
        for index, url in candidates:
            reason = self.rejection_reason(url)
            if not reason:
                selected.append((index, url))
                continue
            logger.warning("Image %d of %s rejected (%s): %s", index, product_id, url, reason)
            result.failures.append(ImageFailure(index=index, source_url=url, reason=reason))
            done += 1
            if on_progress:
                on_progress(done, total, False)
        if not selected:
            return result

        logger.info("Processing %d images for %s (concurrency %d)",
                    len(selected), product_id, self.options.concurrency)

        executor = ThreadPoolExecutor(
            max_workers=min(self.options.concurrency, len(selected)),
            thread_name_prefix='image',
        )
        futures = {
            executor.submit(self.process_one, url, product_id, index): (index, url)
            for index, url in selected
        }
        try:
            for future in as_completed(futures, timeout=self.options.batch_timeout):
                index, url = futures[future]
                done += 1
                try:
                    result.images.append(future.result())
                    ok = True
                except _ITEM_ERRORS as e:
                    reason = f"{type(e).__name__}: {str(e)[:200]}"
                    logger.warning("Image %d of %s failed (%s): %s", index, product_id, url, reason)
                    result.failures.append(ImageFailure(index=index, source_url=url, reason=reason))
                    ok = False
                if on_progress:
                    on_progress(done, total, ok)
        except BatchTimeout:
            for future, (index, url) in futures.items():
                if not future.done():
                    future.cancel()
                    result.failures.append(
                        ImageFailure(index=index, source_url=url, reason='batch timeout exceeded')
                    )
            logger.warning("Image batch for %s timed out after %ss", product_id,
                           self.options.batch_timeout)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        result.images.sort(key=lambda image: image.index)
        result.failures.sort(key=lambda failure: failure.index)
        for position, image in enumerate(result.images):
            image.is_primary = position == 0

        logger.info("Images for %s: %d ok, %d failed",
                    product_id, len(result.images), len(result.failures))
        return result

    def process_one(self, url: str, product_id: str, index: int) -> ProcessedImage:
        """
        Download, re-encode and upload a single image.

        Raises:
            requests.RequestException: Download failed
            OSError: Pillow could not decode the image
            ValueError: Download was empty or too large
            AssetUploadError: Upload was rejected
        """
        data = self.download(url)
        encoded, width, height = self.reencode(data)

        extension, content_type = _CONTENT_TYPES[self.options.output_format]
        filename = asset_filename(product_id, index, extension)
        asset: UploadedAsset = self.asset_store.upload_asset(encoded, filename, content_type)

        logger.debug("Uploaded %s (%dx%d) as %s", url, width, height, asset.asset_id)
        return ProcessedImage(
            source_url=url,
            asset_id=asset.asset_id,
            url=asset.url,
            width=width,
            height=height,
            index=index,
        )

    def download(self, url: str) -> bytes:
        """
        Fetch an image body, enforcing MAX_DOWNLOAD_BYTES while streaming.

        Raises:
            requests.RequestException: Request failed or returned an error status
            ValueError: Body was empty or larger than MAX_DOWNLOAD_BYTES
        """
        response = self.session.get(url, timeout=self.options.request_timeout, stream=True)
        try:
            response.raise_for_status()
            declared = response.headers.get('Content-Length', '')
            if declared.isdigit() and int(declared) > MAX_DOWNLOAD_BYTES:
                raise ValueError(f"image too large ({declared} bytes declared)")

            chunks = []
            received = 0
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                received += len(chunk)
                if received > MAX_DOWNLOAD_BYTES:
                    raise ValueError(f"image too large (over {MAX_DOWNLOAD_BYTES} bytes)")
                chunks.append(chunk)
        finally:
            response.close()

        if not received:
            raise ValueError("empty response body")
        return b''.join(chunks)

    def reencode(self, data: bytes) -> Tuple[bytes, int, int]:
        """
        Fit within max_width x max_height (never upscaled) and re-encode.

        Returns:
            Tuple of (encoded_bytes, width, height)
        """
        with Image.open(BytesIO(data)) as source:
            source.load()
            img = _to_rgb(source)
            img.thumbnail((self.options.max_width, self.options.max_height), Image.Resampling.LANCZOS)

            output = BytesIO()
            img.save(output, format=self.options.output_format, quality=self.options.quality)
            return output.getvalue(), img.width, img.height

    def get_dimensions(self, url: str) -> Optional[Tuple[int, int]]:
        """
        Read image dimensions from the first 32 KB of the file.

        Returns:
            (width, height), or None if the URL is rejected or the header fetch failed
        """
        if self.rejection_reason(url):
            return None
        try:
            response = self.session.get(
                url,
                headers={'Range': HEADER_RANGE},
                timeout=self.options.request_timeout,
            )
            if response.status_code not in (200, 206):
                return None
            with Image.open(BytesIO(response.content)) as img:
                return img.size
        except _ITEM_ERRORS as e:
            logger.debug("Dimension lookup failed for %s: %s", url, e)
            return None

    def is_valid_image_url(self, url: str) -> bool:
        """Accept http(s) URLs with an image extension or from a trusted image host."""
        try:
            parsed = urlparse(url or '')
        except ValueError:
            return False
        if parsed.scheme not in ('http', 'https') or not parsed.hostname:
            return False

        extension = parsed.path.rsplit('.', 1)[-1].lower() if '.' in parsed.path else ''
        if extension in SUPPORTED_EXTENSIONS:
            return True

        host = parsed.hostname.lower()
        return any(host == h or host.endswith('.' + h) for h in self.options.trusted_image_hosts)

    def rejection_reason(self, url: str) -> Optional[str]:
        """
        Why a listing image URL must not be downloaded, or None if it may be.

        Image URLs come from third-party pages, so local names and raw IP
        hosts are refused before any request is made.
        """
        if not self.is_valid_image_url(url):
            return 'rejected URL: not an http(s) image URL'
        if is_blocked_host(urlparse(url).hostname):
            return 'rejected URL: host is not publicly routable'
        return None

    def close(self) -> None:
        self.session.close()


def _to_rgb(img: Image.Image) -> Image.Image:
    """Flatten transparency onto white and convert to RGB."""
    if img.mode in ('RGBA', 'LA', 'P'):
        if img.mode == 'P':
            img = img.convert('RGBA')
        background = Image.new('RGB', img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        return background
    if img.mode != 'RGB':
        return img.convert('RGB')
    return img.copy()
