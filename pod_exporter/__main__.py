import sys

from pod_exporter.main import main

sys.exit(main())
