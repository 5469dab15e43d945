import logging
import math
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait

from apps.files.descriptors import SegmentRef
from apps.files.exceptions import SegmentFetchFailed, SegmentUploadFailed

logger = logging.getLogger(__name__)

SEGMENT_CONTENT_TYPE = 'application/octet-stream'


class SegmentService:
    """
    Splits payloads that are too large for a single upload into segments,
    uploads each one, and reassembles them on retrieval.

    Segments are uploaded and fetched sequentially unless max_workers > 1,
    in which case a bounded thread pool is used. Either way the resulting
    segment list and the reassembled bytes follow segment_index order, never
    completion order.
    """

    def __init__(self, storage_service, max_segment_size, max_workers=1):
        if max_segment_size <= 0:
            raise ValueError("max_segment_size must be positive")
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._storage_service = storage_service
        self.max_segment_size = max_segment_size
        self.max_workers = max_workers

    def segment_size_for(self, total_size: int) -> int:
        """
        Returns the segment size to use for a payload of total_size bytes.

        Payloads shorter than two full segments are split in half, so a file
        just over the upload limit becomes two balanced segments instead of
        one full and one tiny.
        """
        if total_size >= 2 * self.max_segment_size:
            return self.max_segment_size
        return max(1, math.ceil(total_size / 2))

    @staticmethod
    def segment_name(filename: str, index: int) -> str:
        return f"{filename}.part{index:03d}"

    def iter_segments(self, stream, segment_size):
        """
        Reads the stream into a fixed-size buffer, yielding (index, bytes)
        each time the buffer fills, then once more for a non-empty remainder.
        """
        buffer = bytearray(segment_size)
        view = memoryview(buffer)
        index = 0
        filled = 0
        while True:
            data = stream.read(segment_size - filled)
            if not data:
                break
            view[filled:filled + len(data)] = data
            filled += len(data)
            if filled == segment_size:
                yield index, bytes(buffer)
                index += 1
                filled = 0
        if filled:
            yield index, bytes(view[:filled])

    def upload(self, stream, total_size, filename):
        """
        Uploads the stream as segments.

        Returns the SegmentRefs sorted by segment_index.
        Raises SegmentUploadFailed(index) on the first failed segment; segments
        already uploaded are left in place.
        """
        segment_size = self.segment_size_for(total_size)
        logger.info(
            f"Starting segmented upload: {filename} ({total_size} bytes, "
            f"segment size {segment_size}, {self.max_workers} worker(s))"
        )

        segments = self._upload_all(stream, segment_size, filename)
        ordered = sorted(segments, key=lambda segment: segment.segment_index)

        logger.info(f"Segmented upload complete: {filename} ({len(ordered)} segments)")
        return ordered

    def _upload_segment(self, index, data, filename):
        logger.debug(f"Uploading segment {index} of {filename} ({len(data)} bytes)")
        try:
            locator = self._storage_service.upload_chunk(
                data,
                self.segment_name(filename, index),
                SEGMENT_CONTENT_TYPE,
            )
        except Exception as e:
            logger.error(f"Segment {index} of {filename} failed to upload: {e}")
            raise SegmentUploadFailed(index, e) from e
        return SegmentRef.from_locator(locator, index)

    def _upload_all(self, stream, segment_size, filename):
        if self.max_workers == 1:
            return [
                self._upload_segment(index, data, filename)
                for index, data in self.iter_segments(stream, segment_size)
            ]

        completed = []
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='segment-upload')
        in_flight = set()
        try:
            for index, data in self.iter_segments(stream, segment_size):
                if len(in_flight) >= self.max_workers:
                    done, in_flight = wait(in_flight, return_when=FIRST_COMPLETED)
                    completed.extend(future.result() for future in done)
                in_flight.add(executor.submit(self._upload_segment, index, data, filename))
            for future in in_flight:
                completed.append(future.result())
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
        return completed

    def _fetch_segment(self, segment):
        logger.debug(f"Fetching segment {segment.segment_index}")
        try:
            fetched = self._storage_service.download_chunk(segment.locator)
        except Exception as e:
            logger.error(f"Segment {segment.segment_index} failed to download: {e}")
            raise SegmentFetchFailed(segment.segment_index, e) from e
        return fetched.content

    def download(self, segments) -> bytes:
        """
        Fetches every segment and concatenates them in segment_index order.
        Raises SegmentFetchFailed(index) on the first failure; nothing partial
        is returned.
        """
        ordered = sorted(segments, key=lambda segment: segment.segment_index)
        if not ordered:
            raise ValueError("No segments to download")

        logger.info(f"Starting segmented download ({len(ordered)} segments)")

        if self.max_workers == 1:
            parts = [self._fetch_segment(segment) for segment in ordered]
        else:
            executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='segment-fetch')
            try:
                parts = list(executor.map(self._fetch_segment, ordered))
            finally:
                executor.shutdown(wait=True, cancel_futures=True)

        content = b"".join(parts)
        logger.info(f"Segmented download complete ({len(content)} bytes)")
        return content
