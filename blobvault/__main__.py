import sys

from blobvault.cli import main

sys.exit(main())
