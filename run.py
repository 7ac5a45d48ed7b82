import sys

from segment_merger.main import main

# Run the merger
if __name__ == "__main__":
    sys.exit(main())
