""" Shifted linear solves with cached factorizations, and inner products
"""
import numpy as np
import scipy.linalg
import scipy.sparse
from scipy.linalg import lu_factor, lu_solve, cho_factor, cho_solve, LinAlgError, LinAlgWarning
from scipy.sparse import issparse, csc_matrix
from scipy.sparse.linalg import splu
import warnings


__all__ = ['ShiftedSolver', 'inner_product', 'is_spd']


class ShiftedSolver(object):
	r""" Solve shifted linear systems, recycling factorizations

	For a shift :math:`s`, this solves :math:`(\mathbf{A} - s\mathbf{E})\mathbf{x} = \mathbf{b}`
	(or its transpose). Factorizations are cached by shift value for the lifetime
	of the object. A system at :math:`\overline{s}` reuses the factors of :math:`s`,
	since for real :math:`\mathbf{A},\mathbf{E}` these are the complex conjugates.

	An infinite shift solves with :math:`\mathbf{E}` instead, using a Cholesky
	factorization where :math:`\mathbf{E}` is dense and positive definite and a
	pivoted LU otherwise.

	Parameters
	----------
	A: array-like or sparse (n,n)
	E: array-like or sparse (n,n), optional
		Defaults to the identity
	"""
	def __init__(self, A, E = None):
		self.A = A
		if E is None:
			E = scipy.sparse.identity(A.shape[0], format = 'csc') if issparse(A) else np.eye(A.shape[0])
		self.E = E
		self.sparse = issparse(A) or issparse(E)
		self.real = np.isrealobj(A) and np.isrealobj(E)
		self._factors = {}
		self.nfactorizations = 0
		self.nsolves = 0

	@staticmethod
	def _key(s):
		if np.isinf(s):
			return 'inf'
		return complex(s)

	def __contains__(self, s):
		key = self._key(s)
		return key in self._factors or (key != 'inf' and key.conjugate() in self._factors)

	def _factor(self, s):
		if np.isinf(s):
			M = self.E
		elif np.imag(s) == 0:
			M = self.A - np.real(s)*self.E
		else:
			M = self.A - s*self.E

		if self.sparse:
			M = csc_matrix(M)
			return ('splu', splu(M), np.iscomplexobj(M))

		M = np.asarray(M)
		if np.isinf(s) and np.allclose(M, M.T):
			try:
				return ('cho', cho_factor(M), np.iscomplexobj(M))
			except LinAlgError:
				# E is not positive definite
				pass

		with warnings.catch_warnings():
			warnings.simplefilter('error', LinAlgWarning)
			try:
				lu = lu_factor(M)
			except LinAlgWarning:
				raise LinAlgError("Matrix A - s E is singular at s = %s" % (s,))
		return ('lu', lu, np.iscomplexobj(M))

	def factorization(self, s):
		r""" Return the factorization for shift s and whether it must be conjugated
		"""
		key = self._key(s)
		if key in self._factors:
			return self._factors[key], False
		if key != 'inf' and self.real and key.conjugate() in self._factors:
			return self._factors[key.conjugate()], True
		self._factors[key] = self._factor(s)
		self.nfactorizations += 1
		return self._factors[key], False

	@staticmethod
	def _apply(F, b, trans):
		kind, fac, cplx = F
		if kind == 'cho':
			return cho_solve(fac, b)
		if kind == 'lu':
			return lu_solve(fac, b, trans = 1 if trans else 0)
		# SuperLU objects only accept right hand sides of their own dtype
		mode = 'T' if trans else 'N'
		if np.iscomplexobj(b) and not cplx:
			return fac.solve(np.ascontiguousarray(b.real), trans = mode) \
				+ 1j*fac.solve(np.ascontiguousarray(b.imag), trans = mode)
		if cplx:
			b = b.astype(complex)
		return fac.solve(np.ascontiguousarray(b), trans = mode)

	def solve(self, s, b, trans = False):
		r""" Solve :math:`(\mathbf{A} - s\mathbf{E})\mathbf{x} = \mathbf{b}`

		Parameters
		----------
		s: complex or inf
			Shift
		b: np.array (n,) or (n,k)
			Right hand side
		trans: bool
			If True, solve :math:`(\mathbf{A} - s\mathbf{E})^\top\mathbf{x} = \mathbf{b}` instead
		"""
		b = np.asarray(b)
		F, conj = self.factorization(s)
		self.nsolves += 1
		if conj:
			return self._apply(F, b.conj(), trans).conj()
		return self._apply(F, b, trans)


def _is_identity(E):
	n = E.shape[0]
	if issparse(E):
		return (E - scipy.sparse.identity(n)).count_nonzero() == 0
	return np.array_equal(E, np.eye(n))


def is_spd(E):
	r""" Test whether E is symmetric positive definite
	"""
	if issparse(E):
		E = csc_matrix(E)
		if abs(E - E.T).max() > 1e-12*abs(E).max():
			return False
		try:
			# Without pivoting, the LU of an SPD matrix has a positive diagonal
			lu = splu(E, permc_spec = 'NATURAL', diag_pivot_thresh = 0,
				options = dict(SymmetricMode = True))
		except RuntimeError:
			return False
		return bool(np.all(lu.U.diagonal() > 0))

	E = np.asarray(E)
	if not np.allclose(E, E.T):
		return False
	try:
		scipy.linalg.cholesky(E)
	except LinAlgError:
		return False
	return True


def inner_product(E, kind = 'auto'):
	r""" Build the inner product used to orthonormalize Krylov bases

	Parameters
	----------
	E: array-like or sparse (n,n)
		Descriptor matrix of the system
	kind: ['auto', 'E', 'euclidean'] or callable
		* E: :math:`\langle x, y\rangle = x^\top \mathbf{E} y`; requires E symmetric positive definite
		* euclidean: :math:`\langle x, y\rangle = x^\top y`
		* auto: the E inner product if E is symmetric positive definite
		  and not the identity, otherwise the Euclidean one
		* a callable :code:`ip(x, y)` is returned unchanged

	Returns
	-------
	ip: callable
		:code:`ip(x, y)` for vectors x, y
	"""
	if callable(kind):
		return kind
	if kind == 'auto':
		if E is None or _is_identity(E) or not is_spd(E):
			kind = 'euclidean'
		else:
			kind = 'E'

	if kind == 'euclidean':
		return lambda x, y: x.T @ y
	elif kind == 'E':
		return lambda x, y: x.T @ (E @ y)
	raise ValueError("Unknown inner product '%s'" % (kind,))
