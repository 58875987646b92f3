from pathlib import Path

here = Path(__file__).parent
root_path = here.parent
