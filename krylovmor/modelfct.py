import numpy as np
import warnings
from iterprinter import IterationPrinter

from .system import LinearSystem
from .shifts import s0_vect, setdiff_vec
from .solvers import ShiftedSolver
from .krylov import gram_schmidt
from .h2 import IRKA


__all__ = ['ModelFunction', 'model_fct_mor', 'CIRKA', 'cirka',
	'ModelFunctionNotConvergedWarning', 'ModelFunctionSizeWarning']


class ModelFunctionNotConvergedWarning(UserWarning):
	pass


class ModelFunctionSizeWarning(UserWarning):
	pass


class ModelFunction(object):
	r""" Krylov surrogate of a large system that grows with the shifts it is given

	The model function is the projection of :code:`sys` onto rational Krylov
	subspaces of all shifts passed to :meth:`update` so far. Columns are never
	removed; factorizations of :math:`\mathbf{A} - s\mathbf{E}` are cached for
	the lifetime of the object, including reuse for conjugate shifts.

	Each new shift continues the Krylov sequence from the last block of columns:
	the very first block starts from :math:`\mathbf{B}` (:math:`\mathbf{C}^\top` for
	:math:`\mathbf{W}`), later ones from :math:`\mathbf{E}\mathbf{V}_{\text{last}}`
	(:math:`\mathbf{E}^\top\mathbf{W}_{\text{last}}`). For a complex pair the real
	and imaginary parts of the solution give two blocks.
	Bases are orthonormalized with :func:`krylovmor.krylov.gram_schmidt`.

	If the number of inputs and outputs differ, the model function is a
	one-sided (Galerkin) projection with :math:`\mathbf{W}=\mathbf{V}`.

	Parameters
	----------
	sys: LinearSystem
		The system to approximate
	"""
	def __init__(self, sys):
		self.sys = sys
		self.solver = ShiftedSolver(sys.A, sys.E)
		self.two_sided = sys.m == sys.p
		self.s0m = np.zeros(0, dtype = complex)
		self.V = np.zeros((sys.n, 0))
		self.W = np.zeros((sys.n, 0)) if self.two_sided else None
		self._sysm = None

	@property
	def order(self):
		return self.V.shape[1]

	@property
	def nshifts(self):
		return len(self.s0m)

	def columns(self, s0):
		r""" Number of columns that :code:`update(s0)` would add
		"""
		return len(s0_vect(s0))*self.sys.m

	def _grow(self, X, s, start, trans):
		k = X.shape[1]
		x = self.solver.solve(s, start, trans = trans)
		if np.imag(s) != 0:
			new = np.hstack([x.real, x.imag])
		else:
			new = x.real
		X = np.hstack([X, new])
		X, _, _ = gram_schmidt(X, cols = range(k, X.shape[1]))
		return X

	def update(self, s0):
		r""" Add the Krylov directions of the shifts s0 to the model function

		Parameters
		----------
		s0: array-like
			New shifts; a vector or the two-row notation
		"""
		s0 = s0_vect(s0)
		sys = self.sys
		m, p = sys.m, sys.p
		E = sys.E
		# One member per complex pair
		for s in s0[np.imag(s0) >= 0]:
			if self.order == 0:
				x = sys.B
				y = sys.C.T
			else:
				x = E @ self.V[:,-m:]
				if self.two_sided:
					y = E.T @ self.W[:,-p:]
			self.V = self._grow(self.V, s, x, False)
			if self.two_sided:
				self.W = self._grow(self.W, s, y, True)
		self.s0m = np.hstack([self.s0m, s0])
		self._sysm = None
		return self

	@property
	def sysm(self):
		r""" The current model function as a LinearSystem
		"""
		if self._sysm is None:
			self._sysm = self.sys.project(self.V, self.W)
		return self._sysm


def model_fct_mor(sys, reduce_fn, s0, qm0 = None, s0m = None, maxiter = 20, tol = 1e-6, verbose = False,
	full_output = False):
	r""" Model order reduction with an adaptively grown model function

	Instead of reducing the expensive system :code:`sys` in every step of a
	shift search, :code:`reduce_fn` is applied to a model function, a Krylov
	surrogate of :code:`sys` that is grown by the shifts the reduction proposes.
	The iteration stops once the proposed shifts stop moving,

	.. math::

		\frac{\| \mathbf{s}_{0,\text{new}} - \mathbf{s}_0 \|}{\|\mathbf{s}_0\|} \le \text{tol},

	with shifts matched irrespective of their order (absolute if
	:math:`\|\mathbf{s}_0\|=0`). If the model function would reach the
	order of :code:`sys`, :code:`sys` itself is reduced once more and the
	iteration stops.

	Parameters
	----------
	sys: LinearSystem
		Full order model
	reduce_fn: callable
		:code:`reduce_fn(sysm, s0) -> (sysr, s0new)`
	s0: array-like
		Initial shifts for reduce_fn
	qm0: int, optional
		Number of initial model function shifts; defaults to :code:`max(10, 2*len(s0))`
	s0m: array-like, optional
		Initial model function shifts; defaults to :code:`qm0` shifts at zero
	maxiter: int
		Maximum number of outer iterations
	tol: float
		Tolerance on the change of the shifts
	verbose: bool
		If True, print the convergence history
	full_output: bool
		If True, also return the model function and whether the iteration converged

	Returns
	-------
	sysr: LinearSystem
		Reduced model
	s0: np.array
		Shifts returned by the last call to reduce_fn
	model: ModelFunction
		The final model function; only if :code:`full_output`
	converged: bool
		Only if :code:`full_output`
	"""
	s0 = s0_vect(s0)
	if s0m is None:
		if qm0 is None:
			qm0 = max(10, 2*len(s0))
		s0m = np.zeros(qm0)

	model = ModelFunction(sys)
	if model.columns(s0m) >= sys.n:
		raise ValueError("The initial model function must be smaller than the original model")
	model.update(s0m)

	if verbose:
		printer = IterationPrinter(it = '4d', order = '6d', crit = '10.3e')
		printer.print_header(it = 'iter', order = 'qm', crit = 'Δ s0')

	converged = False
	for it in range(maxiter):
		final = False
		if it > 0:
			if model.order + model.columns(s0) < sys.n:
				model.update(s0)
				sysm = model.sysm
			else:
				warnings.warn("Model function is already as big as the original model; "
					"using the original model for one last iteration", ModelFunctionSizeWarning)
				sysm = sys
				final = True
		else:
			sysm = model.sysm

		sysr, s0new = reduce_fn(sysm, s0)
		s0new = s0_vect(s0new)

		norm = np.linalg.norm(s0)
		crit = np.linalg.norm(setdiff_vec(s0new, s0))
		if norm != 0:
			crit /= norm

		if verbose:
			printer.print_iter(it = it + 1, order = sysm.n, crit = crit)

		if crit <= tol:
			converged = True
			break
		s0 = s0new
		if final:
			break

	if not converged and not final:
		warnings.warn("Model function reduction did not converge within %d iterations" % maxiter,
			ModelFunctionNotConvergedWarning)
	if full_output:
		return sysr, s0new, model, converged
	return sysr, s0new


class CIRKA(object):
	r""" Confined Iterative Rational Krylov Algorithm

	IRKA applied to a model function of the system, see :func:`model_fct_mor`.
	The model function is grown by the shifts at which the last IRKA run converged.

	Parameters
	----------
	qm0: int, optional
		Number of initial model function shifts; defaults to :code:`len(s0) + 2`
	s0m: array-like, optional
		Initial model function shifts; defaults to :code:`qm0` shifts at zero
	maxiter: int
		Maximum number of model function updates
	tol: float
		Tolerance on the change of the shifts between outer iterations
	verbose: bool
		If True, print the outer convergence history
	irka_options: dict, optional
		Options for the inner :class:`krylovmor.h2.IRKA`; the stopping criterion
		defaults to 's0' and the inner iteration is silent
	"""
	def __init__(self, qm0 = None, s0m = None, maxiter = 8, tol = 1e-3, verbose = False, irka_options = None):
		if int(maxiter) != maxiter or maxiter < 1:
			raise ValueError("maxiter must be a positive integer")
		if tol <= 0:
			raise ValueError("tol must be positive")
		self.qm0 = qm0
		self.s0m = s0m
		self.maxiter = int(maxiter)
		self.tol = tol
		self.verbose = verbose
		self.irka_options = dict(stop_crit = 's0', verbose = False)
		if irka_options is not None:
			self.irka_options.update(irka_options)
		# Fail on bad inner options before any work is done
		IRKA(**self.irka_options)

	def fit(self, sys, s0):
		r""" Reduce sys starting from the shifts s0
		"""
		if not isinstance(sys, LinearSystem):
			raise ValueError("sys must be a LinearSystem")
		s0 = s0_vect(s0)
		qm0 = self.qm0
		if qm0 is None:
			qm0 = len(s0) + 2

		s0_traj = [np.copy(s0)]
		self._inner = []

		def reduce_fn(sysm, s0):
			est = IRKA(**self.irka_options).fit(sysm, s0)
			self._inner.append(est)
			s0_traj.append(np.copy(est.s0))
			return est.sysr, est.s0

		sysr, s0, model, converged = model_fct_mor(sys, reduce_fn, s0, qm0 = qm0, s0m = self.s0m,
			maxiter = self.maxiter, tol = self.tol, verbose = self.verbose, full_output = True)

		self.sysr = sysr
		self.s0 = s0
		self.model_function = model
		self.sysm = model.sysm
		self.converged = converged
		self.iterations = len(self._inner)
		self.s0_traj = s0_traj
		return self


def cirka(sys, s0, **options):
	r""" Confined Iterative Rational Krylov Algorithm, function form

	Options are passed to :class:`CIRKA`.

	Returns
	-------
	sysr: LinearSystem
		Reduced model
	s0: np.array
		Shifts at which sysr interpolates the model function
	"""
	est = CIRKA(**options).fit(sys, s0)
	return est.sysr, est.s0
