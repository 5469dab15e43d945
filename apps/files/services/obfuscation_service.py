import hashlib
import io
import logging

from PIL import Image, UnidentifiedImageError

from apps.files.exceptions import ImageDecodeFailed, ImageEncodeFailed, UnsupportedImageType

logger = logging.getLogger(__name__)

# MIME type -> Pillow format name
IMAGE_FORMATS = {
    'image/jpeg': 'JPEG',
    'image/png': 'PNG',
}

DIVISOR_TARGET = 50


def is_supported_image(content_type) -> bool:
    return content_type in IMAGE_FORMATS


def largest_divisor(n: int, target: int = DIVISOR_TARGET) -> int:
    """
    Returns the largest divisor of n that is not greater than target.
    Every n has 1 as a divisor, so that is the fallback.
    """
    for candidate in range(min(n, target), 1, -1):
        if n % candidate == 0:
            return candidate
    return 1


class ObfuscationService:
    """
    Scrambles images by permuting equal-sized blocks, and restores them.

    The image is cut into a gx by gy grid (gx and gy are the largest divisors
    of width and height not above DIVISOR_TARGET). Blocks are numbered 1..N
    in raster order and each gets a sort key derived from the secret and its
    number. Sorting by that key gives a permutation: destination slot i in
    the scrambled image holds the block whose number sorted into place i.
    Restoring computes the same permutation and applies its inverse.

    The hash only has to spread blocks uniformly and deterministically; it is
    not meant to resist someone who holds the secret.
    """

    def __init__(self, secret: str, jpeg_quality: int = 95, divisor_target: int = DIVISOR_TARGET):
        if not secret:
            raise ValueError("secret cannot be empty")
        self._secret = secret
        self.jpeg_quality = jpeg_quality
        self.divisor_target = divisor_target

    def _sort_key(self, number: int) -> str:
        # Block n uses character n mod len; multiples of len use the last one
        key_char = self._secret[number % len(self._secret) or len(self._secret) - 1]
        return hashlib.md5(f"{key_char}{number}".encode("utf-8"), usedforsecurity=False).hexdigest()

    def permutation(self, block_count: int):
        """
        Returns the 1-based block numbers in destination order. Ties on the
        hash fall back to the block number, so the order is always total.
        """
        numbers = range(1, block_count + 1)
        return sorted(numbers, key=lambda number: (self._sort_key(number), number))

    def grid_for(self, width: int, height: int):
        """Returns (gx, gy, block_width, block_height) for an image size."""
        gx = largest_divisor(width, self.divisor_target)
        gy = largest_divisor(height, self.divisor_target)
        return gx, gy, width // gx, height // gy

    def scramble(self, image_bytes: bytes, content_type: str) -> bytes:
        return self._transform(image_bytes, content_type, inverse=False)

    def restore(self, image_bytes: bytes, content_type: str) -> bytes:
        return self._transform(image_bytes, content_type, inverse=True)

    def _decode(self, image_bytes, image_format):
        try:
            image = Image.open(io.BytesIO(image_bytes))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            logger.error(f"Failed to decode {image_format} image: {e}")
            raise ImageDecodeFailed() from e
        if image.format != image_format:
            logger.warning(f"Image declared as {image_format} decoded as {image.format}")
        return image

    def _encode(self, image, image_format):
        output = io.BytesIO()
        try:
            if image_format == 'JPEG':
                if image.mode not in ('RGB', 'L', 'CMYK'):
                    image = image.convert('RGB')
                image.save(output, format='JPEG', quality=self.jpeg_quality, subsampling=0)
            else:
                image.save(output, format=image_format)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to encode {image_format} image: {e}")
            raise ImageEncodeFailed() from e
        return output.getvalue()

    def _transform(self, image_bytes, content_type, inverse):
        image_format = IMAGE_FORMATS.get(content_type)
        if image_format is None:
            raise UnsupportedImageType(f"Unsupported image type: {content_type}")

        image = self._decode(image_bytes, image_format)
        width, height = image.size
        gx, gy, block_width, block_height = self.grid_for(width, height)
        order = self.permutation(gx * gy)

        def box(position):
            x, y = position % gx, position // gx
            left, top = x * block_width, y * block_height
            return (left, top, left + block_width, top + block_height)

        logger.debug(
            f"{'Restoring' if inverse else 'Scrambling'} {width}x{height} image "
            f"with a {gx}x{gy} grid of {block_width}x{block_height} blocks"
        )

        # Copy keeps mode, palette and metadata; every block is overwritten
        output = image.copy()
        for destination, number in enumerate(order):
            if inverse:
                source_box, target_box = box(destination), box(number - 1)
            else:
                source_box, target_box = box(number - 1), box(destination)
            output.paste(image.crop(source_box), target_box[:2])

        return self._encode(output, image_format)
