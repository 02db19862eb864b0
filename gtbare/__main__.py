import sys

from gtbare.main import main

sys.exit(main())
