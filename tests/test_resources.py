import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from popm_bootstrap.errors import InsufficientStorageError
from popm_bootstrap.resources import ResourceGuard, get_available_kb


def disk_usage(free_kb):
    return MagicMock(free=free_kb * 1024)


class TestResourceGuard(unittest.TestCase):

    @patch('popm_bootstrap.resources.psutil.disk_usage')
    def test_fails_below_requirement(self, mock_disk_usage):
        mock_disk_usage.return_value = disk_usage(499999)

        with self.assertRaises(InsufficientStorageError) as ctx:
            ResourceGuard("/").check(500000)

        self.assertEqual(ctx.exception.required_kb, 500000)
        self.assertEqual(ctx.exception.available_kb, 499999)
        self.assertIn("Required: 500000KB", str(ctx.exception))

    @patch('popm_bootstrap.resources.psutil.disk_usage')
    def test_passes_at_exact_requirement(self, mock_disk_usage):
        mock_disk_usage.return_value = disk_usage(500000)
        ResourceGuard("/").check(500000)

    @patch('popm_bootstrap.resources.psutil.disk_usage')
    def test_passes_above_requirement(self, mock_disk_usage):
        mock_disk_usage.return_value = disk_usage(2000000)
        ResourceGuard("/").check(500000)

    @patch('popm_bootstrap.resources.psutil.disk_usage')
    def test_reads_target_filesystem(self, mock_disk_usage):
        mock_disk_usage.return_value = MagicMock(free=10 * 1024 + 1023)

        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(get_available_kb(tmp), 10)
            mock_disk_usage.assert_called_once_with(str(Path(tmp).absolute()))

    @patch('popm_bootstrap.resources.psutil.disk_usage')
    def test_missing_workdir_measures_nearest_existing_parent(self, mock_disk_usage):
        mock_disk_usage.return_value = disk_usage(600000)

        with tempfile.TemporaryDirectory() as tmp:
            workdir = Path(tmp) / "not-yet" / "popm"
            ResourceGuard(workdir).check(500000)

            mock_disk_usage.assert_called_once_with(str(Path(tmp).absolute()))
            self.assertFalse(workdir.exists())

    def test_missing_workdir_on_real_filesystem(self):
        with tempfile.TemporaryDirectory() as tmp:
            available = get_available_kb(Path(tmp) / "not-yet" / "popm")

        self.assertGreaterEqual(available, 0)


if __name__ == '__main__':
    unittest.main()
