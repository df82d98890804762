"""
Warden — an expression language with a reference monitor.

Privileged operations (read, write, open) are admitted only when both
monitors agree:

  Stack inspection: every frame on the live call chain grants the request.
  Trace automata: every installed policy still accepts the event string.

| Layer                         | Purpose                                   |
<------------------------------ + ----------------------------------------- >
| **Evaluator**                 | Big-step, explicit environment and state  |
| **Stack inspection**          | Permission-set walk over call frames      |
| **Trace automata**            | Conjunctive acceptance, lexical install   |
| **Policy construction**       | Automata built from ordinary expressions  |
| **Run documents**             | JSON programs, hashes, replay             |
| **Logbook ledger**            | Signed audit of runs                      |
| **Policy analysis**           | networkx graphs, Graphviz export          |
"""

from . import core as _core
from . import errors as _errors
from . import syntax as _syntax
from . import permissions as _permissions
from . import automata as _automata
from . import evaluator as _evaluator
from . import policies as _policies
from . import analysis as _analysis
from . import bitcode as _bitcode
from . import crypto as _crypto
from ..constants import KEY_FILE, LOGBOOK_FILE, PUB_FILE

from .core import *
from .errors import *
from .syntax import *
from .permissions import *
from .automata import *
from .evaluator import *
from .policies import *
from .analysis import *
from .bitcode import *
from .crypto import *

__all__ = []
for module in (
    _core,
    _errors,
    _syntax,
    _permissions,
    _automata,
    _evaluator,
    _policies,
    _analysis,
    _bitcode,
    _crypto,
):
    __all__.extend(getattr(module, '__all__', []))
__all__ += ['KEY_FILE', 'LOGBOOK_FILE', 'PUB_FILE']
__all__ = list(dict.fromkeys(__all__))
