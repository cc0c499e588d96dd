import numpy as np
import scipy.linalg
from scipy.linalg import LinAlgError
from scipy.sparse import issparse

from .shifts import cplxpair
from .solvers import ShiftedSolver, inner_product as _inner_product


__all__ = ['arnoldi', 'gram_schmidt']


def _orthonormalize(x, X, k, ip, r = None, Rsylv = None):
	r""" Modified Gram-Schmidt of x against the first k columns of X

	The same linear combination is applied to the Sylvester coefficient r
	(against the columns of Rsylv).
	"""
	for i in range(k):
		h = ip(x, X[:,i])
		x = x - h*X[:,i]
		if r is not None:
			r = r - h*Rsylv[:,i]
	h = np.sqrt(ip(x, x))
	if not np.isfinite(h) or h == 0:
		raise LinAlgError("Krylov subspace exhausted after %d columns" % k)
	x = x/h
	if r is not None:
		r = r/h
	return x, r


def gram_schmidt(X, cols = None, S = None, R = None):
	r""" Gram-Schmidt orthonormalization that preserves a Sylvester equation

	Orthonormalizes the columns :code:`cols` of :math:`\mathbf{X}` against all
	preceding columns (Euclidean inner product). Each elementary step is the
	triangular update :math:`\mathbf{X} \leftarrow \mathbf{X}\mathbf{T}`, and the
	same transformation is applied to the optional Sylvester data,

	.. math::

		\mathbf{S} \leftarrow \mathbf{T}^{-1}\mathbf{S}\mathbf{T}, \quad
		\mathbf{R} \leftarrow \mathbf{R}\mathbf{T},

	so that if :math:`\mathbf{A}\mathbf{X} - \mathbf{E}\mathbf{X}\mathbf{S} - \mathbf{B}\mathbf{R} = \mathbf{0}`
	holds on input, it still holds on output. The triangular matrices are
	never formed; their action is applied as rank-one updates.

	Parameters
	----------
	X: array-like (n,q)
		Matrix whose columns are orthonormalized
	cols: iterable of int, optional
		Columns to treat, in order; defaults to all columns
	S: array-like (q,q), optional
	R: array-like (m,q), optional

	Returns
	-------
	X: np.array (n,q)
	S: np.array (q,q) or None
	R: np.array (m,q) or None
	"""
	X = np.array(X, dtype = float)
	if S is not None:
		S = np.array(S, dtype = complex if np.iscomplexobj(S) else float)
	if R is not None:
		R = np.array(R, dtype = complex if np.iscomplexobj(R) else float)
	if cols is None:
		cols = range(X.shape[1])

	for k in cols:
		for j in range(k):
			# T = I + t e_j e_k^T, T^{-1} = I - t e_j e_k^T
			t = -X[:,k] @ X[:,j]
			X[:,k] += t*X[:,j]
			if S is not None:
				S[:,k] += t*S[:,j]
				S[j,:] -= t*S[k,:]
			if R is not None:
				R[:,k] += t*R[:,j]
		h = np.linalg.norm(X[:,k])
		if h == 0:
			raise LinAlgError("Column %d is linearly dependent on the previous ones" % k)
		X[:,k] /= h
		if S is not None:
			S[:,k] /= h
			S[k,:] *= h
		if R is not None:
			R[:,k] /= h
	return X, S, R


def _directions(D, rows, nshifts, name):
	D = np.array(D)
	if D.ndim == 1:
		D = D.reshape(rows, -1) if rows == 1 else D.reshape(rows, 1)
	if D.ndim != 2 or D.shape[0] != rows:
		raise ValueError("%s must have %d rows" % (name, rows))
	if D.shape[1] != nshifts:
		raise ValueError("%s must have the same number of columns as s0" % name)
	return D


def arnoldi(E, A, B, s0, C = None, R = None, L = None, inner_product = 'auto', reorth = 'gs', solver = None):
	r""" Arnoldi algorithm using multiple expansion points

	Computes an orthonormal basis :math:`\mathbf{V}` of the input (rational)
	Krylov subspace

	.. math::

		\mathrm{span}\left\lbrace (\mathbf{A} - s_j\mathbf{E})^{-1}\mathbf{B}\mathbf{r}_j,
			\left[(\mathbf{A} - s_j\mathbf{E})^{-1}\mathbf{E}\right](\mathbf{A} - s_j\mathbf{E})^{-1}\mathbf{B}\mathbf{r}_j, \ldots \right\rbrace

	and, if :math:`\mathbf{C}` is given (Hermite interpolation), the basis
	:math:`\mathbf{W}` of the output Krylov subspace for the same shifts
	built from :math:`(\mathbf{A} - s_j\mathbf{E})^{-\top}\mathbf{C}^\top \mathbf{l}_j`.

	Shifts are processed in the canonical order of :func:`krylovmor.shifts.cplxpair`.
	Repeated shifts match higher moments. A shift at infinity matches Markov
	parameters and uses a factorization of :math:`\mathbf{E}`.
	For every complex pair only one linear system is solved; its real and
	imaginary parts are stored as separate columns, the imaginary parts after
	all other columns. Without tangential directions, MIMO systems use block
	Krylov subspaces (one column per input and shift).

	The basis is orthonormalized by modified Gram-Schmidt in the given inner
	product. The coefficients of the Sylvester equation

	.. math::

		\mathbf{A}\mathbf{V} - \mathbf{E}\mathbf{V}\mathbf{S}_V - \mathbf{B}\mathbf{R}_{sylv} = \mathbf{0}

	(and its dual for :math:`\mathbf{W}`) are updated alongside.

	Parameters
	----------
	E, A: array-like or sparse (n,n)
		System matrices
	B: array-like (n,m)
		Input matrix
	s0: array-like (q,)
		Expansion points, closed under conjugation; must be a row or column vector
	C: array-like (p,n), optional
		Output matrix; if given, also compute W
	R: array-like (m,q), optional
		Right tangential directions, one column per shift
	L: array-like (p,q), optional
		Left tangential directions, one column per shift
	inner_product: ['auto', 'E', 'euclidean'] or callable
		Inner product used for orthonormalization; see :func:`krylovmor.solvers.inner_product`
	reorth: ['gs', 'qr', None]
		Reorthogonalization: repeat modified Gram-Schmidt (default, keeps the Sylvester
		coefficients consistent), economy QR (changes the basis; Rsylv/Lsylv are then
		returned as None), or none
	solver: ShiftedSolver, optional
		Solver holding previously computed factorizations of A - s E

	Returns
	-------
	V: np.array (n,q)
		Orthonormal basis of the input Krylov subspace
	Rsylv: np.array (m,q)
		Right tangential directions of the Sylvester equation
	W: np.array (n,q) or None
		Orthonormal basis of the output Krylov subspace
	Lsylv: np.array (p,q) or None
		Left tangential directions of the Sylvester equation for W
	"""
	s0 = np.array(s0)
	if s0.ndim > 1:
		if s0.ndim > 2 or min(s0.shape) > 1:
			raise ValueError("s0 must be a vector containing the expansion points")
	s0 = s0.flatten()
	if reorth not in ('gs', 'qr', None, False):
		raise ValueError("The orthogonalization chosen is incorrect or not implemented")

	n = A.shape[0]
	B = np.asarray(B.toarray() if issparse(B) else B)
	if B.ndim == 1:
		B = B.reshape(-1, 1)
	m = B.shape[1]

	hermite = C is not None
	if hermite:
		C = np.asarray(C.toarray() if issparse(C) else C)
		if C.ndim == 1:
			C = C.reshape(1, -1)
		p = C.shape[0]
	elif L is not None:
		raise ValueError("Left tangential directions L require the output matrix C")

	if R is not None:
		R = _directions(R, m, len(s0), 'R')
	if L is not None:
		L = _directions(L, p, len(s0), 'L')
	if hermite and ((R is None) != (L is None)):
		raise ValueError("Tangential Hermite interpolation requires both R and L")

	block = R is None and m > 1
	if R is None:
		if hermite and m != p:
			raise ValueError("Block Krylov for m != p is not supported in arnoldi")
		R = np.ones((1, len(s0))) if m == 1 else None
		if hermite:
			L = np.ones((1, len(s0))) if m == 1 else None

	# Canonical order; directions follow their shifts
	s0, I = cplxpair(s0, return_index = True)
	s0 = s0.astype(complex)
	if R is not None:
		R = R[:,I]
	if L is not None:
		L = L[:,I]

	# Keep one member of each complex pair
	keep = np.argwhere(s0.imag >= 0).flatten()
	shifts = []
	dirR = []
	dirL = []
	for k in keep:
		if block:
			for i in range(m):
				shifts.append(s0[k])
				dirR.append(np.eye(m)[:,i])
				if hermite:
					dirL.append(np.eye(p)[:,i])
		else:
			shifts.append(s0[k])
			dirR.append(R[:,k])
			if hermite:
				dirL.append(L[:,k])

	step = m if block else 1
	ncplx = sum([1 for s in shifts if s.imag != 0])
	ndirect = len(shifts)
	q = ndirect + ncplx

	ip =_inner_product(E, inner_product)
	if solver is None:
		solver = ShiftedSolver(A, E)

	V = np.zeros((n, q))
	Rsylv = np.zeros((m, q), dtype = complex)
	if hermite:
		W = np.zeros((n, q))
		Lsylv = np.zeros((p, q), dtype = complex)

	imag_cols = []
	for jCol in range(ndirect):
		s = shifts[jCol]
		pred = jCol - step
		if pred >= 0 and shifts[pred] == s:
			# Higher moment at a repeated shift
			if np.isinf(s):
				x = A @ V[:,pred]
				if hermite:
					y = A.T @ W[:,pred]
			else:
				x = E @ V[:,pred]
				if hermite:
					y = E.T @ W[:,pred]
			r = np.zeros(m)
			if hermite:
				l = np.zeros(p)
		else:
			x = B @ dirR[jCol]
			r = dirR[jCol]
			if hermite:
				y = C.T @ dirL[jCol]
				l = dirL[jCol]

		x = solver.solve(s, x)
		if hermite:
			y = solver.solve(s, y, trans = True)

		if s.imag != 0:
			# Split complex columns into real (here) and imaginary (appended) parts
			imag_cols.append((np.imag(x), np.imag(r), np.imag(y) if hermite else None,
				np.imag(l) if hermite else None))
		x, r = np.real(x), np.real(r)
		if hermite:
			y, l = np.real(y), np.real(l)

		V[:,jCol], Rsylv[:,jCol] = _orthonormalize(x, V, jCol, ip, r, Rsylv)
		if hermite:
			W[:,jCol], Lsylv[:,jCol] = _orthonormalize(y, W, jCol, ip, l, Lsylv)

	# Orthogonalize columns from imaginary components
	for k, (x, r, y, l) in enumerate(imag_cols):
		jCol = ndirect + k
		V[:,jCol], Rsylv[:,jCol] = _orthonormalize(x, V, jCol, ip, r, Rsylv)
		if hermite:
			W[:,jCol], Lsylv[:,jCol] = _orthonormalize(y, W, jCol, ip, l, Lsylv)

	Rsylv = Rsylv.real
	if hermite:
		Lsylv = Lsylv.real

	# Even modified Gram-Schmidt loses orthogonality for larger q; repeating it
	# does not change the basis in exact arithmetic, unlike QR
	if reorth == 'gs':
		for jCol in range(1, q):
			V[:,jCol], Rsylv[:,jCol] = _orthonormalize(V[:,jCol], V, jCol, ip, Rsylv[:,jCol], Rsylv)
			if hermite:
				W[:,jCol], Lsylv[:,jCol] = _orthonormalize(W[:,jCol], W, jCol, ip, Lsylv[:,jCol], Lsylv)
	elif reorth == 'qr':
		V = scipy.linalg.qr(V, mode = 'economic')[0]
		Rsylv = None
		if hermite:
			W = scipy.linalg.qr(W, mode = 'economic')[0]
			Lsylv = None

	if not hermite:
		return V, Rsylv, None, None
	return V, Rsylv, W, Lsylv
