from os import getenv
from pathlib import Path

# default output directory for built packages
DIST_DIR = Path(getenv("DEBPAX_DIST_DIR", "dist"))

# per-project state (build numbers, unpacked packages being merged)
CACHE_DIR = Path(getenv("DEBPAX_CACHE_DIR", ".debpax"))

# reproducible-builds convention; overrides the archive timestamp when set
SOURCE_DATE_EPOCH = getenv("SOURCE_DATE_EPOCH")

DEFAULT_CONFIG = "debpax.toml"

# ar members, in the order dpkg expects them
DEBIAN_BINARY = "debian-binary"
CONTROL_MEMBER = "control.tar.gz"
DATA_MEMBER = "data.tar.gz"
DEBIAN_BINARY_VERSION = b"2.0\n"

DEFAULT_DIR_MODE = 0o755
DEFAULT_FILE_MODE = 0o644
SCRIPT_MODE = 0o755

# chunk size used when streaming payload files into the tarball
COPY_BUFSIZE = 64 * 1024
