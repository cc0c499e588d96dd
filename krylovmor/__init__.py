# Utilities
from .shifts import *
from .solvers import ShiftedSolver, inner_product, is_spd

# LTI Systems
from .system import *

# Krylov subspace model reduction
from .krylov import arnoldi, gram_schmidt
from .interpolation import rk, RKResult
from .h2 import IRKA, irka, IRKANotConvergedWarning
from .modelfct import ModelFunction, model_fct_mor, CIRKA, cirka, ModelFunctionNotConvergedWarning, ModelFunctionSizeWarning
from .sylvester import get_sylvester, sylvester_residual, pork_w, pork_v

# Benchmark systems
#import demos
