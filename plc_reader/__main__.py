import sys

from plc_reader.main import main

sys.exit(main())
