import numpy as np
import scipy.linalg
import warnings
from iterprinter import IterationPrinter

from .system import LinearSystem
from .shifts import cplxpair, hungarian_sort
from .solvers import ShiftedSolver
from .interpolation import rk, _canonical


__all__ = ['IRKA', 'irka', 'IRKANotConvergedWarning']


class IRKANotConvergedWarning(UserWarning):
	pass


_STOP_CRITS = ('s0', 'sysr', 'combAll', 'combAny')
_TYPES = ('', 'stab')


def _h2(sys):
	# H2 norm of the strictly proper part
	return LinearSystem(sys.A, sys.B, sys.C, None, sys._E).norm()


def s0_criterion(s0, s0_old):
	r""" Mean relative change of the shifts

	.. math::

		\frac{1}{q}\sum_i \frac{|s_i - s_{i,\text{old}}|}{|s_i|}

	where shifts are matched by an optimal assignment and entries with
	:math:`s_i = 0` use the absolute change.
	"""
	s0 = np.atleast_1d(s0)
	s0_old = np.atleast_1d(s0_old)
	I = hungarian_sort(s0, s0_old)
	scale = np.abs(s0)
	scale[scale == 0] = 1.
	return float(np.sum(np.abs(s0 - s0_old[I])/scale)/len(s0))


def sysr_criterion(sysr, sysr_old):
	r""" Relative H2 distance between consecutive reduced models

	Returns :code:`inf` if there is no previous model or either one is unstable.
	"""
	if sysr_old is None or not sysr.isstable() or not sysr_old.isstable():
		return np.inf
	norm = _h2(sysr)
	if norm == 0:
		return np.inf
	return float(_h2(sysr - sysr_old)/norm)


def _unit(x):
	# Unit norm, with the largest entry real and positive
	k = np.argmax(np.abs(x))
	if np.abs(x[k]) == 0:
		return x
	return x*np.conj(x[k])/np.abs(x[k])/np.linalg.norm(x)


class IRKA(object):
	r""" Iterative Rational Krylov Algorithm

	Seeks a locally H2-optimal reduced model of :math:`\mathbf{E}\mathbf{x}' = \mathbf{A}\mathbf{x} + \mathbf{B}\mathbf{u}`
	by the fixed point iteration

	.. math::

		\mathbf{s}_0 \leftarrow -\lambda(\mathbf{A}_r, \mathbf{E}_r)

	where each reduced model is the Hermite interpolant at the current shifts
	built by :func:`krylovmor.interpolation.rk`. For MIMO systems the iteration is tangential:
	the directions are replaced by the residue directions of the reduced model
	in every step.

	Parameters
	----------
	maxiter: int
		Maximum number of iterations
	epsilon: float
		Tolerance for the stopping criterion
	stop_crit: ['combAny', 'combAll', 's0', 'sysr']
		* s0: mean relative change of the shifts
		* sysr: relative H2 distance of consecutive reduced models
		* combAll: both criteria below epsilon
		* combAny: either criterion below epsilon
	type: ['', 'stab']
		If 'stab', shifts with negative real part are mirrored into the right half plane
	cplxpair_tol: float
		Tolerance used to pair the new shifts into complex conjugates
	verbose: bool
		If True, print the convergence history
	inner_product: ['auto', 'E', 'euclidean'] or callable
		Inner product of the Krylov bases
	"""
	def __init__(self, maxiter = 50, epsilon = 1e-3, stop_crit = 'combAny', type = '', cplxpair_tol = 1e-6,
			verbose = False, inner_product = 'auto'):
		if np.iscomplexobj(epsilon) or not np.isfinite(epsilon) or epsilon <= 0:
			raise ValueError("epsilon must be a real positive number")
		if int(maxiter) != maxiter or maxiter < 1:
			raise ValueError("maxiter must be a positive integer")
		if stop_crit not in _STOP_CRITS:
			raise ValueError("stop_crit must be one of %s" % (', '.join(_STOP_CRITS),))
		if type not in _TYPES:
			raise ValueError("type must be '' or 'stab'")
		self.maxiter = int(maxiter)
		self.epsilon = float(epsilon)
		self.stop_crit = stop_crit
		self.type = type
		self.cplxpair_tol = cplxpair_tol
		self.verbose = verbose
		self.inner_product = inner_product

	def _stop(self, crit_s0, crit_sysr):
		if self.stop_crit == 's0':
			return crit_s0 <= self.epsilon
		if self.stop_crit == 'sysr':
			return crit_sysr <= self.epsilon
		if self.stop_crit == 'combAll':
			return crit_s0 <= self.epsilon and crit_sysr <= self.epsilon
		return crit_s0 <= self.epsilon or crit_sysr <= self.epsilon

	def _update(self, sysr, tangential):
		r""" New shifts (and directions) from the mirrored poles of sysr
		"""
		if tangential:
			ew, Y, X = scipy.linalg.eig(sysr.A, sysr.E, left = True, right = True)
		else:
			ew = scipy.linalg.eigvals(sysr.A, sysr.E)
		s0 = -ew
		s0[~np.isfinite(s0)] = 0

		Rt = Lt = None
		if tangential:
			Rt = np.zeros((sysr.m, len(s0)), dtype = complex)
			Lt = np.zeros((sysr.p, len(s0)), dtype = complex)
			for i in range(len(s0)):
				x, y = X[:,i], Y[:,i]
				b = (y.conj() @ sysr.B)/(y.conj() @ (sysr.E @ x))
				c = sysr.C @ x
				# The residue directions of lambda belong to the shift -lambda
				Rt[:,i] = _unit(b)
				Lt[:,i] = _unit(c)

		if self.type == 'stab':
			s0 = np.where(s0.real < 0, -s0, s0)

		s0, I = cplxpair(s0, tol = self.cplxpair_tol, return_index = True)
		if tangential:
			Rt = Rt[:,I]
			Lt = Lt[:,I]
			if np.isrealobj(s0):
				Rt, Lt = Rt.real, Lt.real
		return s0, Rt, Lt

	def fit(self, sys, s0, Rt = None, Lt = None):
		r""" Reduce sys starting from the shifts s0

		Parameters
		----------
		sys: LinearSystem
			Full order model
		s0: array-like
			Initial shifts; a vector or the two-row notation. Their number is the reduced order.
		Rt: array-like (m,q), optional
			Initial right tangential directions (MIMO); defaults to ones
		Lt: array-like (p,q), optional
			Initial left tangential directions (MIMO); defaults to ones
		"""
		if not isinstance(sys, LinearSystem):
			raise ValueError("sys must be a LinearSystem")
		s0_input = s0
		s0, Rt = _canonical(s0_input, Rt, 'Rt')
		q = len(s0)
		tangential = sys.is_mimo or Rt is not None or Lt is not None
		if tangential:
			if Rt is None:
				Rt = np.ones((sys.m, q))
			if Lt is None:
				Lt = np.ones((sys.p, q))
			else:
				_, Lt = _canonical(s0_input, Lt, 'Lt')

		self.history = []
		s0_traj = [np.copy(s0)]
		stop_crit_traj = []
		self.nsolves = 0
		self.converged = False

		if self.verbose:
			printer = IterationPrinter(it = '4d', s0_crit = '10.3e', sysr_crit = '10.3e', nsolves = '8d')
			printer.print_header(it = 'iter', s0_crit = 'Δ s0', sysr_crit = 'Δ sysr', nsolves = 'solves')

		sysr_old = None
		for it in range(self.maxiter):
			solver = ShiftedSolver(sys.A, sys.E)
			res = rk(sys, s0, s0, Rt, Lt, inner_product = self.inner_product, solver = solver)
			self.nsolves += solver.nsolves
			sysr = res.sysr
			s0_used, Rt_used, Lt_used = s0, Rt, Lt

			s0_new, Rt_new, Lt_new = self._update(sysr, tangential)
			crit_s0 = s0_criterion(s0_new, s0)
			crit_sysr = sysr_criterion(sysr, sysr_old)
			stop_crit_traj.append((crit_s0, crit_sysr))
			s0_traj.append(np.copy(s0_new))

			self.history.append({
				's0': np.copy(s0),
				'sysr': sysr,
				's0_crit': crit_s0,
				'sysr_crit': crit_sysr,
				'nsolves': self.nsolves,
			})

			if self.verbose:
				printer.print_iter(it = it + 1, s0_crit = crit_s0, sysr_crit = crit_sysr, nsolves = self.nsolves)

			if self._stop(crit_s0, crit_sysr):
				self.converged = True
				break

			s0, Rt, Lt = s0_new, Rt_new, Lt_new
			sysr_old = sysr

		if not self.converged:
			warnings.warn("IRKA has not converged after %d steps." % self.maxiter, IRKANotConvergedWarning)

		# Results belong to the shifts that built the last reduced model
		self.sysr = sysr
		self.V = res.V
		self.W = res.W
		self.s0 = s0_used
		self.Rt = Rt_used
		self.Lt = Lt_used
		self.iterations = it + 1
		self.s0_traj = np.array(s0_traj)
		self.stop_crit_traj = np.array(stop_crit_traj)
		return self


def irka(sys, s0, Rt = None, Lt = None, **options):
	r""" Iterative Rational Krylov Algorithm, function form

	Options are passed to :class:`IRKA`.

	Returns
	-------
	sysr: LinearSystem
		Reduced model
	V, W: np.array (n,q)
		Projection matrices of sysr
	s0: np.array (q,)
		Shifts at which sysr interpolates sys
	s0_traj: np.array (iterations + 1, q)
		Shifts in every iteration, starting from the initial ones
	"""
	est = IRKA(**options).fit(sys, s0, Rt = Rt, Lt = Lt)
	return est.sysr, est.V, est.W, est.s0, est.s0_traj
