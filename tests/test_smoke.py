"""
Smoke tests to verify basic application integrity.
Ensures that all modules can be imported without errors.
"""
import unittest


class TestSmoke(unittest.TestCase):
    def test_import_main_module(self):
        """Test that dctop.__main__ can be imported successfully."""
        try:
            import dctop.__main__
        except ImportError as e:
            self.fail(f"Failed to import dctop.__main__: {e}")

    def test_import_backend(self):
        """Test that dctop.backend can be imported successfully."""
        try:
            import dctop.backend
        except ImportError as e:
            self.fail(f"Failed to import dctop.backend: {e}")

    def test_import_window(self):
        """Test that dctop.window can be imported successfully."""
        try:
            import dctop.window
        except ImportError as e:
            self.fail(f"Failed to import dctop.window: {e}")

    def test_version(self):
        import dctop
        self.assertEqual(dctop.__version__, "0.1.0")


if __name__ == '__main__':
    unittest.main()
