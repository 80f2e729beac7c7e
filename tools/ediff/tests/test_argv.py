import unittest

from ..argv import ArgVector


class ArgVectorInitTests(unittest.TestCase):
    def test_rejects_non_positive_capacity(self) -> None:
        for capacity in (0, -1):
            with self.assertRaises(ValueError):
                ArgVector(capacity)

    def test_starts_empty_and_terminated(self) -> None:
        args = ArgVector(4)
        self.assertEqual(len(args), 0)
        self.assertEqual(args.capacity, 4)
        self.assertIsNone(args[0])
        self.assertEqual(args.to_list(), [])


class ArgVectorPushTests(unittest.TestCase):
    def test_push_keeps_sentinel_after_last_element(self) -> None:
        args = ArgVector(2)
        for count, value in enumerate(["diff", "-u", "--label", "x"], start=1):
            args.push(value)
            self.assertEqual(len(args), count)
            self.assertIsNone(args[count])
            self.assertLess(len(args), args.capacity)

    def test_capacity_doubles_when_sentinel_slot_would_be_used(self) -> None:
        args = ArgVector(2)
        args.push("diff")
        self.assertEqual(args.capacity, 2)
        # count + 1 == capacity triggers the growth.
        args.push("-u")
        self.assertEqual(args.capacity, 4)
        args.push("--label")
        self.assertEqual(args.capacity, 4)
        args.push("echo hello")
        self.assertEqual(args.capacity, 8)

    def test_preserves_order(self) -> None:
        args = ArgVector(1)
        values = [f"arg{i}" for i in range(20)]
        args.extend(values)
        self.assertEqual(args.to_list(), values)
        self.assertEqual(list(args), values)

    def test_owns_pushed_strings(self) -> None:
        class Label(str):
            pass

        args = ArgVector(2)
        args.push(Label("echo hello"))
        self.assertIs(type(args[0]), str)
        self.assertEqual(args[0], "echo hello")

    def test_negative_index_and_out_of_range(self) -> None:
        args = ArgVector(2)
        args.extend(["diff", "-u"])
        self.assertEqual(args[-1], "-u")
        with self.assertRaises(IndexError):
            args[3]


class ArgVectorCopyTests(unittest.TestCase):
    def test_copy_is_independent(self) -> None:
        seed = ArgVector(2)
        seed.extend(["diff", "-u"])
        clone = seed.copy()
        clone.push("--label")
        self.assertEqual(seed.to_list(), ["diff", "-u"])
        self.assertEqual(clone.to_list(), ["diff", "-u", "--label"])


if __name__ == "__main__":
    unittest.main()
