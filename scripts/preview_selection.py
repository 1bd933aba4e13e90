#!/usr/bin/env python3
"""Preview digest selection from a source checkout.

Equivalent to the ``jobdigest-preview`` console script:
    python scripts/preview_selection.py --contact-id 42
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from jobdigest.preview import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
