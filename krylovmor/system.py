import numpy as np
import scipy.linalg
import scipy.sparse
import scipy.sparse.linalg
from scipy.linalg import block_diag, eigvals, solve_continuous_lyapunov
from scipy.sparse import issparse, csc_matrix
from warnings import catch_warnings


__all__ = ['LinearSystem']


def _as_operator(X, n, name):
	# Square system matrices may stay sparse; everything else is dense
	if X is None:
		return None
	if issparse(X):
		X = csc_matrix(X)
	else:
		X = np.array(X)
		if X.ndim != 2:
			raise ValueError("%s must be a two-dimensional matrix" % name)
	if X.shape != (n, n):
		raise ValueError("%s must be of size (%d, %d); got %s" % (name, n, n, X.shape))
	return X


def _as_dense(X):
	if issparse(X):
		return X.toarray()
	return np.array(X)


def _freeze(X):
	if isinstance(X, np.ndarray):
		X.setflags(write = False)
	return X


class LinearSystem(object):
	r"""A continuous-time linear time-invariant system in descriptor form

	Given matrices :math:`\mathbf{E},\mathbf{A}\in \mathbb{R}^{n\times n}`,
	:math:`\mathbf{B}\in \mathbb{R}^{n\times m}`,
	:math:`\mathbf{C}\in \mathbb{R}^{p\times n}`,
	and :math:`\mathbf{D}\in \mathbb{R}^{p\times m}`,
	this class represents the dynamical system

	.. math::

		\mathbf{E}\mathbf{x}'(t) &= \mathbf{A}\mathbf{x}(t) + \mathbf{B} \mathbf{u}(t) \\
		\mathbf{y}(t) &= \mathbf{C} \mathbf{x}(t) + \mathbf{D}\mathbf{u}(t).

	Instances are never modified after construction; reduction routines
	return new systems.

	Parameters
	----------
	A: array-like or sparse (n,n)
		System matrix
	B: array-like (n,m)
		Matrix mapping input to state; a 1-D array is treated as a column
	C: array-like (p,n)
		Matrix mapping state to output; a 1-D array is treated as a row
	D: array-like (p,m), optional
		Feedthrough; defaults to zero
	E: array-like or sparse (n,n), optional
		Descriptor matrix; defaults to the identity
	"""
	def __init__(self, A, B, C, D = None, E = None):
		if not issparse(A):
			A = np.array(A)
		if len(A.shape) != 2 or A.shape[0] != A.shape[1]:
			raise ValueError("A must be a square matrix; got shape %s" % (A.shape,))
		n = A.shape[0]

		self._A = _freeze(_as_operator(A, n, 'A'))
		self._E = _freeze(_as_operator(E, n, 'E'))

		B = _as_dense(B)
		if B.ndim == 1:
			B = B.reshape(-1, 1)
		if B.ndim != 2 or B.shape[0] != n:
			raise ValueError("B must have %d rows; got shape %s" % (n, B.shape))

		C = _as_dense(C)
		if C.ndim == 1:
			C = C.reshape(1, -1)
		if C.ndim != 2 or C.shape[1] != n:
			raise ValueError("C must have %d columns; got shape %s" % (n, C.shape))

		p, m = C.shape[0], B.shape[1]
		if D is None:
			D = np.zeros((p, m))
		else:
			D = _as_dense(D)
			if D.size == p*m:
				D = D.reshape(p, m)
		if D.shape != (p, m):
			raise ValueError("D must be of size (%d, %d); got %s" % (p, m, D.shape))

		self._B = _freeze(B)
		self._C = _freeze(C)
		self._D = _freeze(D)

	def __repr__(self):
		kind = 'descriptor' if self.is_descriptor else 'state-space'
		return "<LinearSystem (%s): n=%d, m=%d, p=%d>" % (kind, self.n, self.m, self.p)

	def __getitem__(self, key):
		"""Extract a subsystem component-wise
		"""
		if isinstance(key, tuple):
			rows, cols = key
		else:
			rows, cols = key, slice(None)
		rows = np.atleast_1d(np.arange(self.p)[rows])
		cols = np.atleast_1d(np.arange(self.m)[cols])
		return LinearSystem(self.A, self.B[:, cols], self.C[rows], self.D[np.ix_(rows, cols)], self._E)

	@property
	def A(self):
		""" State space matrix of size (n,n)
		"""
		return self._A

	@property
	def B(self):
		""" Input matrix of size (n, m)
		"""
		return self._B

	@property
	def C(self):
		""" Output matrix of size (p, n)
		"""
		return self._C

	@property
	def D(self):
		return self._D

	@property
	def E(self):
		""" Descriptor matrix; the identity (in the storage format of A) if none was given
		"""
		if self._E is None:
			if issparse(self._A):
				return scipy.sparse.identity(self.n, format = 'csc')
			return np.eye(self.n)
		return self._E

	@property
	def n(self):
		return self._A.shape[0]

	state_dim = n

	@property
	def m(self):
		return self._B.shape[1]

	input_dim = m

	@property
	def p(self):
		return self._C.shape[0]

	output_dim = p

	@property
	def shape(self):
		return (self.p, self.m)

	@property
	def is_descriptor(self):
		r""" True if :math:`\mathbf{E}` was given and differs from the identity
		"""
		if self._E is None:
			return False
		if issparse(self._E):
			return (self._E - scipy.sparse.identity(self.n)).count_nonzero() > 0
		return not np.array_equal(self._E, np.eye(self.n))

	@property
	def is_mimo(self):
		return self.m > 1 or self.p > 1

	@property
	def is_siso(self):
		return not self.is_mimo

	@property
	def issparse(self):
		return issparse(self._A)

	@property
	def isreal(self):
		isreal = np.isrealobj(self._A) and np.isrealobj(self._B) and np.isrealobj(self._C)
		if self._E is not None:
			isreal = isreal and np.isrealobj(self._E)
		return isreal

	def _resolvent_solve(self, z, X):
		# Solve (z E - A) Y = X
		K = z*self.E - self.A
		if issparse(K):
			Y = scipy.sparse.linalg.spsolve(csc_matrix(K), X)
			return Y.reshape(X.shape)
		return scipy.linalg.solve(K, X)

	def transfer(self, z, der = False, left_tangent = None, right_tangent = None):
		r"""Evaluate the transfer function of the system

		.. math::

			H(z) = \mathbf{C}(z\mathbf{E} - \mathbf{A})^{-1}\mathbf{B} + \mathbf{D}

		Parameters
		----------
		z: array-like (N,)
			Points at which to evaluate the transfer function
		der: bool
			If True, return the derivative of the transfer function as well
		left_tangent: array-like (p,), optional
			If given, evaluate :math:`\mathbf{c}^\top H(z)`
		right_tangent: array-like (m,), optional
			If given, evaluate :math:`H(z)\mathbf{b}`

		Returns
		-------
		Hz: np.array (N, p, m)
			Samples of the transfer function (with reduced dimensions
			if tangents were provided)
		Hpz: np.array (N, p, m)
			Derivative of the transfer function at z;
			only returned if :code:`der` is True.
		"""
		z = np.atleast_1d(z)
		assert len(z.shape) == 1, "Too many dimensions in input z"

		B = self.B
		C = self.C
		D = self.D
		if right_tangent is not None:
			right_tangent = np.array(right_tangent).reshape(self.m, -1)
			B = B @ right_tangent
			D = D @ right_tangent
		if left_tangent is not None:
			left_tangent = np.array(left_tangent).reshape(-1, self.p)
			C = left_tangent @ C
			D = left_tangent @ D

		Hz = np.zeros((len(z), C.shape[0], B.shape[1]), dtype = complex)
		if der:
			Hpz = np.zeros((len(z), C.shape[0], B.shape[1]), dtype = complex)

		for i in range(len(z)):
			X = self._resolvent_solve(z[i], B.astype(complex))
			Hz[i] = C @ X + D
			if der:
				X_der = self._resolvent_solve(z[i], self.E @ X)
				Hpz[i] = -C @ X_der

		if der:
			return Hz, Hpz
		return Hz

	def moments(self, s0, k = 1):
		r"""Taylor coefficients of the transfer function around a finite point

		Returns :math:`\mathbf{M}_0,\ldots,\mathbf{M}_{k-1}` such that
		:math:`H(s) = \sum_j \mathbf{M}_j (s - s_0)^j`, i.e.,

		.. math::

			\mathbf{M}_j = (-1)^j \mathbf{C} \left[(s_0\mathbf{E} - \mathbf{A})^{-1}\mathbf{E}\right]^j
				(s_0\mathbf{E} - \mathbf{A})^{-1}\mathbf{B} \quad (+\mathbf{D} \text{ for } j = 0)

		Returns
		-------
		M: np.array (k, p, m)
		"""
		if not np.isfinite(s0):
			raise ValueError("moments are only defined for finite expansion points")
		M = np.zeros((k, self.p, self.m), dtype = complex)
		X = self._resolvent_solve(s0, self.B.astype(complex))
		for j in range(k):
			M[j] = (-1)**j * (self.C @ X)
			X = self._resolvent_solve(s0, self.E @ X)
		M[0] += self.D
		if np.isreal(s0) and self.isreal:
			return M.real
		return M

	def poles(self):
		r"""Eigenvalues of the pencil :math:`(\mathbf{A}, \mathbf{E})`

		Infinite eigenvalues (singular :math:`\mathbf{E}`) are returned as :code:`inf`.
		"""
		A = _as_dense(self.A)
		if self._E is None:
			return eigvals(A)
		return eigvals(A, _as_dense(self._E))

	def spectral_abscissa(self):
		ew = self.poles()
		ew = ew[np.isfinite(ew)]
		if len(ew) == 0:
			return -np.inf
		return np.max(ew.real)

	def isstable(self):
		return bool(self.spectral_abscissa() < 0)

	def to_state_space(self):
		r""" Absorb a nonsingular :math:`\mathbf{E}` into :math:`\mathbf{A}` and :math:`\mathbf{B}`
		"""
		if self._E is None:
			return self
		E = _as_dense(self._E)
		A = scipy.linalg.solve(E, _as_dense(self.A))
		B = scipy.linalg.solve(E, self.B)
		return LinearSystem(A, B, self.C, self.D)

	def norm(self):
		r""" Computes the H2 norm

		Returns :code:`inf` for unstable systems and for systems with nonzero feedthrough.
		"""
		if self.n == 0:
			return 0. if not np.any(self.D) else np.inf
		if np.any(self.D != 0):
			return np.inf
		if not self.isstable():
			return np.inf
		sys = self.to_state_space()
		A = _as_dense(sys.A)
		with catch_warnings(record = True) as w:
			X = solve_continuous_lyapunov(A, -sys.B @ sys.B.conj().T)
			if any([isinstance(w_, RuntimeWarning) for w_ in w]):
				return np.nan
		norm2 = np.trace(sys.C @ X @ sys.C.conj().T).real
		if norm2 < 0:
			return np.nan
		return float(np.sqrt(norm2))

	def _combine(self, other, sign):
		if not isinstance(other, LinearSystem):
			raise NotImplementedError("Don't know how to combine these systems")
		if self.m != other.m:
			raise ValueError("Input dimensions must be the same")
		if self.p != other.p:
			raise ValueError("Output dimensions must be the same")

		# Combinations are always formed densely
		A = block_diag(_as_dense(self.A), _as_dense(other.A))
		E = block_diag(_as_dense(self.E), _as_dense(other.E))
		B = np.vstack([self.B, other.B])
		C = np.hstack([self.C, sign*other.C])
		D = self.D + sign*other.D
		if self._E is None and other._E is None:
			E = None
		return LinearSystem(A, B, C, D, E)

	def __add__(self, other):
		return self._combine(other, 1)

	def __sub__(self, other):
		return self._combine(other, -1)

	def transpose(self):
		r""" Dual system :math:`(\mathbf{A}^\top, \mathbf{C}^\top, \mathbf{B}^\top, \mathbf{D}^\top, \mathbf{E}^\top)`
		"""
		E = None if self._E is None else self._E.T
		return LinearSystem(self.A.T, self.C.T, self.B.T, self.D.T, E)

	@property
	def T(self):
		return self.transpose()

	def project(self, V, W = None):
		r""" Petrov-Galerkin projection onto the columns of V along W

		Returns the reduced system
		:math:`(\mathbf{W}^\top\mathbf{A}\mathbf{V}, \mathbf{W}^\top\mathbf{B},
		\mathbf{C}\mathbf{V}, \mathbf{D}, \mathbf{W}^\top\mathbf{E}\mathbf{V})`;
		:math:`\mathbf{W}=\mathbf{V}` if W is not given.
		"""
		if W is None:
			W = V
		if V.shape[0] != self.n or W.shape[0] != self.n:
			raise ValueError("Projection matrices must have %d rows" % self.n)
		if V.shape[1] != W.shape[1]:
			raise ValueError("V and W must have the same number of columns")
		Ar = W.T @ (self.A @ V)
		Er = W.T @ (self.E @ V)
		Br = W.T @ self.B
		Cr = self.C @ V
		return LinearSystem(np.asarray(Ar), Br, np.asarray(Cr), self.D, np.asarray(Er))
