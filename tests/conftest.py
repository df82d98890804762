import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from warden import (
    evaluate_program,
    no_read_after_write,
    no_write_after_read,
)


@pytest.fixture
def no_raw():
    return evaluate_program(no_read_after_write()).value


@pytest.fixture
def no_war():
    return evaluate_program(no_write_after_read()).value
