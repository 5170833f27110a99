from pathlib import Path
from time import time
import sys

PERFORMANCE_CHARTS_DIR = Path(__file__).parent.parent / "charts"
BLUE = "tab:blue"
RED = "tab:red"
GREEN = "tab:green"
GREY = "tab:gray"


def get_python_version():
    version_info = sys.version_info
    version = f"{version_info.major}.{version_info.minor}.{version_info.micro}"
    if "free-threading" in sys.version:
        version += "t"
    return version


def time_it(funct, *args, **kwargs):
    time_start = time()
    result = funct(*args, **kwargs)
    return {"time": time() - time_start, "result": result}
