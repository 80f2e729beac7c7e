"""Tests for the descriptor allocator and close-on-exec helpers."""

import errno
import os
import unittest
from unittest import mock

from . import close_quietly
from .. import descriptors
from ..constants import DIFF_MAXFD, SAFETY_FLOOR
from ..descriptors import (
    DescriptorAllocator,
    Pipe,
    clear_close_on_exec,
    duplicate_at_or_above,
    is_close_on_exec,
    set_close_on_exec,
)
from ..errors import ResourceError


class DuplicateAtOrAboveTests(unittest.TestCase):
    def setUp(self) -> None:
        self.read_end, self.write_end = os.pipe()
        self.addCleanup(close_quietly, self.read_end, self.write_end)

    def test_result_is_at_or_above_floor_and_close_on_exec(self) -> None:
        for floor in (0, SAFETY_FLOOR, 40):
            newfd = duplicate_at_or_above(self.write_end, floor)
            self.addCleanup(close_quietly, newfd)
            self.assertGreaterEqual(newfd, floor)
            self.assertTrue(is_close_on_exec(newfd))

    def test_duplicate_refers_to_same_stream(self) -> None:
        newfd = duplicate_at_or_above(self.write_end, SAFETY_FLOOR)
        self.addCleanup(close_quietly, newfd)
        os.write(newfd, b"through the copy\n")
        self.assertEqual(os.read(self.read_end, 100), b"through the copy\n")

    def test_bad_descriptor_is_fatal_resource_error(self) -> None:
        os.close(self.write_end)
        with self.assertRaises(ResourceError) as ctx:
            duplicate_at_or_above(self.write_end, SAFETY_FLOOR)
        self.assertEqual(ctx.exception.operation, "fcntl F_DUPFD")
        self.assertEqual(ctx.exception.errno, errno.EBADF)

    def test_exhausted_table_names_operation(self) -> None:
        with mock.patch.object(
            descriptors.fcntl,
            "fcntl",
            side_effect=OSError(errno.EMFILE, "Too many open files"),
        ):
            with self.assertRaises(ResourceError) as ctx:
                duplicate_at_or_above(self.write_end, SAFETY_FLOOR)
        self.assertEqual(str(ctx.exception), "fcntl F_DUPFD: Too many open files")


class CloseOnExecTests(unittest.TestCase):
    def setUp(self) -> None:
        self.read_end, self.write_end = os.pipe()
        self.addCleanup(close_quietly, self.read_end, self.write_end)

    def test_clear_then_set(self) -> None:
        # os.pipe() descriptors start out non-inheritable.
        self.assertTrue(is_close_on_exec(self.read_end))
        clear_close_on_exec(self.read_end)
        self.assertFalse(is_close_on_exec(self.read_end))
        self.assertTrue(os.get_inheritable(self.read_end))
        set_close_on_exec(self.read_end)
        self.assertTrue(is_close_on_exec(self.read_end))

    def test_clear_is_idempotent(self) -> None:
        clear_close_on_exec(self.write_end)
        clear_close_on_exec(self.write_end)
        self.assertFalse(is_close_on_exec(self.write_end))

    def test_query_failure_is_fatal(self) -> None:
        os.close(self.read_end)
        with self.assertRaises(ResourceError) as ctx:
            clear_close_on_exec(self.read_end)
        self.assertEqual(ctx.exception.operation, "fcntl F_GETFD")


class DescriptorAllocatorTests(unittest.TestCase):
    def test_floor_is_one_past_highest_consumer_descriptor(self) -> None:
        self.assertEqual(SAFETY_FLOOR, DIFF_MAXFD + 1)
        self.assertEqual(DescriptorAllocator().floor, SAFETY_FLOOR)

    def test_negative_floor_rejected(self) -> None:
        with self.assertRaises(ValueError):
            DescriptorAllocator(-1)

    def test_pipes_land_above_consumer_descriptors_for_any_table_state(self) -> None:
        allocator = DescriptorAllocator()
        for occupied in range(8):
            base_read, base_write = os.pipe()
            fillers = [os.dup(base_read) for _ in range(occupied)]
            try:
                pipe = allocator.open_pipe()
                try:
                    for fd in (pipe.read_end, pipe.write_end):
                        self.assertGreater(fd, DIFF_MAXFD)
                        self.assertTrue(is_close_on_exec(fd))
                    self.assertNotEqual(pipe.read_end, pipe.write_end)
                finally:
                    pipe.close()
            finally:
                close_quietly(base_read, base_write, *fillers)

    def test_pipes_skip_freed_low_descriptors(self) -> None:
        # Free descriptors are handed out lowest-first by pipe(); the
        # allocator must never keep one below the floor.
        read_end, write_end = os.pipe()
        low = [os.dup(read_end) for _ in range(3)]
        close_quietly(read_end, write_end, *low)
        pipe = DescriptorAllocator().open_pipe()
        self.addCleanup(pipe.close)
        self.assertGreaterEqual(min(pipe.read_end, pipe.write_end), SAFETY_FLOOR)

    def test_open_pipe_closes_originals(self) -> None:
        real_pipe = os.pipe
        created: list[tuple[int, int]] = []

        def recording_pipe():
            ends = real_pipe()
            created.append(ends)
            return ends

        with mock.patch.object(descriptors.os, "pipe", side_effect=recording_pipe):
            pipe = DescriptorAllocator().open_pipe()
        self.addCleanup(pipe.close)
        (orig_read, orig_write), = created
        for fd in (orig_read, orig_write):
            if fd in (pipe.read_end, pipe.write_end):
                continue
            with self.assertRaises(OSError):
                os.fstat(fd)
        os.write(pipe.write_end, b"x")
        self.assertEqual(os.read(pipe.read_end, 1), b"x")

    def test_pipe_failure_is_fatal(self) -> None:
        with mock.patch.object(
            descriptors.os,
            "pipe",
            side_effect=OSError(errno.ENFILE, "Too many open files in system"),
        ):
            with self.assertRaises(ResourceError) as ctx:
                DescriptorAllocator().open_pipe()
        self.assertEqual(ctx.exception.operation, "pipe")

    def test_rehome_moves_and_closes_original(self) -> None:
        read_end, write_end = os.pipe()
        self.addCleanup(close_quietly, read_end)
        moved = DescriptorAllocator(30).rehome(write_end)
        self.addCleanup(close_quietly, moved)
        self.assertGreaterEqual(moved, 30)
        with self.assertRaises(OSError):
            os.fstat(write_end)

    def test_open_pipe_failure_leaves_nothing_open(self) -> None:
        real_pipe = os.pipe
        real_duplicate = descriptors.duplicate_at_or_above
        created: list[int] = []

        def recording_pipe():
            ends = real_pipe()
            created.extend(ends)
            return ends

        def duplicate_once(fd, floor):
            if len(created) > 2:
                raise ResourceError("fcntl F_DUPFD", "Too many open files")
            newfd = real_duplicate(fd, floor)
            created.append(newfd)
            return newfd

        with mock.patch.object(descriptors.os, "pipe", side_effect=recording_pipe):
            with mock.patch.object(
                descriptors, "duplicate_at_or_above", side_effect=duplicate_once
            ):
                with self.assertRaises(ResourceError):
                    DescriptorAllocator().open_pipe()
        self.assertEqual(len(created), 3)
        for fd in created:
            with self.assertRaises(OSError):
                os.fstat(fd)

    def test_always_eof_source_reads_end_of_stream(self) -> None:
        fd = DescriptorAllocator().always_eof_source()
        self.addCleanup(close_quietly, fd)
        self.assertGreaterEqual(fd, SAFETY_FLOOR)
        self.assertEqual(os.read(fd, 10), b"")
        self.assertEqual(os.read(fd, 10), b"")


class PipeTests(unittest.TestCase):
    def test_close_is_idempotent(self) -> None:
        read_end, write_end = os.pipe()
        pipe = Pipe(read_end=read_end, write_end=write_end)
        pipe.close_write()
        pipe.close()
        pipe.close()
        self.assertEqual(pipe.closed, {read_end, write_end})


if __name__ == "__main__":
    unittest.main()
