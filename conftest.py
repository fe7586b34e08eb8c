import sys
from pathlib import Path
import os

# Ensure repo root on sys.path for imports from anywhere in tests tree.
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("AVATAR_FFMPEG_LOGLEVEL", "error")
os.environ.pop("AVATAR_OPERATION_TIMEOUT", None)
os.environ.pop("AVATAR_ENGINE_WORKDIR", None)
