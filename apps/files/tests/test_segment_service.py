"""
Unit tests for the SegmentService.

Uploads go to an in-memory storage service, so segmentation and reassembly
can be checked byte for byte.
"""
import io
import random
import threading
import time

import pytest
from unittest.mock import Mock

from apps.files.descriptors import Locator, SegmentRef
from apps.files.exceptions import (
    SegmentFetchFailed,
    SegmentUploadFailed,
    StorageDownloadError,
    StorageUploadError,
)
from apps.files.services.segment_service import SegmentService


class TrickleStream(io.BytesIO):
    """A stream that never returns more than a few bytes per read."""

    def read(self, size=-1):
        return super().read(min(size, 7) if size and size > 0 else 7)


@pytest.mark.unit
class TestSegmentSizing:
    """Test how the segment size is chosen."""

    def test_large_payload_uses_max_segment_size(self, memory_storage):
        service = SegmentService(memory_storage, max_segment_size=1024)

        assert service.segment_size_for(10 * 1024) == 1024
        assert service.segment_size_for(2 * 1024) == 1024

    def test_small_payload_is_split_in_half(self, memory_storage):
        """Test that a payload under two segments gets two balanced halves."""
        service = SegmentService(memory_storage, max_segment_size=1024)

        assert service.segment_size_for(1500) == 750
        assert service.segment_size_for(1501) == 751

    def test_invalid_configuration(self, memory_storage):
        with pytest.raises(ValueError):
            SegmentService(memory_storage, max_segment_size=0)
        with pytest.raises(ValueError):
            SegmentService(memory_storage, max_segment_size=1024, max_workers=0)


@pytest.mark.unit
class TestSegmentSplitting:
    """Test how streams are cut into segments."""

    def test_two_and_a_half_segments(self, memory_storage):
        """Test 2.5 S bytes become segments of S, S and 0.5 S with indices 0, 1, 2."""
        size = 1024
        data = bytes(random.Random(1).getrandbits(8) for _ in range(int(2.5 * size)))
        service = SegmentService(memory_storage, max_segment_size=size)

        segments = service.upload(io.BytesIO(data), len(data), 'big.bin')

        assert [s.segment_index for s in segments] == [0, 1, 2]
        assert [upload[1] for upload in memory_storage.uploads] == [size, size, size // 2]
        assert service.download(segments) == data

    def test_exact_multiple_has_no_empty_tail(self, memory_storage):
        """Test that no empty trailing segment is uploaded."""
        data = b'x' * 3072
        service = SegmentService(memory_storage, max_segment_size=1024)

        segments = service.upload(io.BytesIO(data), len(data), 'exact.bin')

        assert len(segments) == 3
        assert all(upload[1] == 1024 for upload in memory_storage.uploads)

    def test_short_reads_fill_the_buffer(self, memory_storage):
        """Test that streams returning fewer bytes than asked still give full segments."""
        data = bytes(range(256)) * 12
        service = SegmentService(memory_storage, max_segment_size=1024)

        segments = service.upload(TrickleStream(data), len(data), 'trickle.bin')

        assert [upload[1] for upload in memory_storage.uploads] == [1024, 1024, 1024]
        assert service.download(segments) == data

    def test_segments_named_and_typed(self, memory_storage):
        """Test segment filenames and content type."""
        data = b'y' * 2048
        service = SegmentService(memory_storage, max_segment_size=1024)

        service.upload(io.BytesIO(data), len(data), 'movie.mp4')

        assert memory_storage.uploads[0] == ('movie.mp4.part000', 1024, 'application/octet-stream')
        assert memory_storage.uploads[1][0] == 'movie.mp4.part001'

    def test_segment_refs_carry_locators(self, memory_storage):
        data = b'z' * 2048
        service = SegmentService(memory_storage, max_segment_size=1024)

        segments = service.upload(io.BytesIO(data), len(data), 'z.bin')

        assert segments[0] == SegmentRef('chan', '1', 'z.bin.part000', 0)
        assert segments[1].locator == Locator('chan', '2', 'z.bin.part001')


@pytest.mark.unit
class TestSegmentOrdering:
    """Test that ordering never depends on completion order."""

    def test_parallel_upload_in_reverse_completion_order(self, memory_storage):
        """Test that segments finishing last-first still come back sorted."""
        data = bytes(range(256)) * 16
        upload = memory_storage.upload_chunk
        # Segment 0 waits for segment 3 to finish, and so on
        finished = {index: threading.Event() for index in range(4)}

        def slow_upload(chunk, filename, content_type):
            index = int(filename[-3:])
            if index < 3:
                finished[index + 1].wait(timeout=5)
            locator = upload(chunk, filename, content_type)
            finished[index].set()
            return locator

        memory_storage.upload_chunk = slow_upload
        service = SegmentService(memory_storage, max_segment_size=1024, max_workers=4)

        segments = service.upload(io.BytesIO(data), len(data), 'rev.bin')

        assert [s.segment_index for s in segments] == [0, 1, 2, 3]
        assert [u[0][-3:] for u in memory_storage.uploads] == ['003', '002', '001', '000']
        assert service.download(segments) == data

    def test_download_sorts_by_index(self, memory_storage):
        """Test that segments handed over shuffled are joined in index order."""
        data = bytes(range(200)) * 20
        service = SegmentService(memory_storage, max_segment_size=1024)
        segments = service.upload(io.BytesIO(data), len(data), 'shuffled.bin')

        shuffled = list(segments)
        random.Random(7).shuffle(shuffled)

        assert service.download(shuffled) == data

    def test_parallel_download_keeps_order(self, memory_storage):
        """Test that concurrent fetches completing out of order still join in order."""
        data = bytes(range(256)) * 16
        service = SegmentService(memory_storage, max_segment_size=1024, max_workers=4)
        segments = service.upload(io.BytesIO(data), len(data), 'fetch.bin')
        download = memory_storage.download_chunk

        def jittered_download(locator):
            time.sleep(0.05 / int(locator.message_id))
            return download(locator)

        memory_storage.download_chunk = jittered_download

        assert service.download(segments) == data


@pytest.mark.unit
class TestSegmentFailures:
    """Test that one failed segment fails the whole transfer."""

    def test_upload_failure_reports_index(self):
        storage = Mock()
        storage.upload_chunk.side_effect = [
            Locator('c', '1', 'f.part000'),
            StorageUploadError("Discord API error (status 429): Too Many Requests", status=429),
        ]
        service = SegmentService(storage, max_segment_size=1024)

        with pytest.raises(SegmentUploadFailed) as exc_info:
            service.upload(io.BytesIO(b'a' * 3000), 3000, 'f')

        assert exc_info.value.index == 1
        assert exc_info.value.status_code == 429
        # The third segment is never attempted
        assert storage.upload_chunk.call_count == 2

    def test_parallel_upload_failure_reports_index(self, memory_storage):
        upload = memory_storage.upload_chunk

        def failing_upload(chunk, filename, content_type):
            if filename.endswith('002'):
                raise StorageUploadError("boom")
            return upload(chunk, filename, content_type)

        memory_storage.upload_chunk = failing_upload
        service = SegmentService(memory_storage, max_segment_size=1024, max_workers=2)

        with pytest.raises(SegmentUploadFailed) as exc_info:
            service.upload(io.BytesIO(b'b' * 4096), 4096, 'g')

        assert exc_info.value.index == 2
        assert exc_info.value.status_code == 502

    def test_fetch_failure_reports_index(self, memory_storage):
        data = b'c' * 3072
        service = SegmentService(memory_storage, max_segment_size=1024)
        segments = service.upload(io.BytesIO(data), len(data), 'h')
        download = memory_storage.download_chunk

        def failing_download(locator):
            if locator.message_id == '2':
                raise StorageDownloadError("Not Found", status=404, reason="Not Found")
            return download(locator)

        memory_storage.download_chunk = failing_download

        with pytest.raises(SegmentFetchFailed) as exc_info:
            service.download(segments)

        assert exc_info.value.index == 1
        assert exc_info.value.status_code == 404

    def test_download_without_segments_fails(self, memory_storage):
        with pytest.raises(ValueError):
            SegmentService(memory_storage, max_segment_size=1024).download([])
