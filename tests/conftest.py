# Minimal conftest providing a fallback 'qtbot' fixture if pytest-qt is not installed.
# Qt tests only need widget lifecycle bookkeeping; if pytest-qt is installed, its
# fixture wins. The offscreen platform is forced so the suite runs headless.

import sys
import os
import contextlib
import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

try:  # If pytest-qt present, do nothing (its fixture will be used)
    import pytestqt  # type: ignore  # noqa: F401
except ImportError:  # pragma: no cover
    try:
        from PyQt6.QtWidgets import QApplication
    except ImportError:  # pragma: no cover
        QApplication = None  # type: ignore

    @pytest.fixture
    def qtbot():  # type: ignore
        if QApplication is None:
            pytest.skip("PyQt6 not available")
        QApplication.instance() or QApplication(sys.argv)  # type: ignore
        widgets = []

        class Bot:
            def addWidget(self, w):  # mimic pytest-qt API subset
                widgets.append(w)

            @contextlib.contextmanager
            def waitSignal(self, *args, **kwargs):  # no-op stub
                yield

        yield Bot()
        for w in widgets:
            w.close()


@pytest.fixture(autouse=True)
def _reset_reduced_motion():
    from tourpilot.design import reduced_motion

    prev = reduced_motion.is_reduced_motion()
    yield
    reduced_motion.set_reduced_motion(prev)
