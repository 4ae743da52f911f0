#!/usr/bin/env python3

if __name__ == "__main__":
    import sys
    import pytest
    print("🚀 Running FocusMail test suite via pytest...")
    # Live Gmail/Gemini tests need real credentials; pass -m integration to include them
    sys.exit(pytest.main(["-v", "-m", "not integration", "tests/", *sys.argv[1:]]))
