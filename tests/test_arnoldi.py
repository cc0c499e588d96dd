import numpy as np
import scipy.linalg
import scipy.sparse as ss
from scipy.linalg import LinAlgError

from krylovmor import arnoldi, gram_schmidt, hungarian_norm
from krylovmor.demos import build_random, build_rc_ladder, build_diagonal

import pytest


def dense(X):
	return X.toarray() if ss.issparse(X) else X


def sylvester_S(H, V, W, Rsylv):
	# S from the projected Sylvester equation A V - E V S - B Rsylv = 0
	W = V if W is None else W
	Er = W.T @ (H.E @ V)
	Ar = W.T @ (H.A @ V)
	Br = W.T @ H.B
	return scipy.linalg.solve(Er, Ar - Br @ Rsylv)


def check_sylvester(H, V, Rsylv, s0, W = None):
	S = sylvester_S(H, V, W, Rsylv)
	res = H.A @ V - (H.E @ V) @ S - H.B @ Rsylv
	scale = np.linalg.norm(dense(H.A), 2)
	assert np.linalg.norm(res, 2) < 1e-8*scale
	ew = scipy.linalg.eigvals(S)
	# Repeated shifts are defective eigenvalues of S, accurate to about sqrt(eps)
	assert hungarian_norm(ew, s0) < 1e-5*max(1, np.linalg.norm(s0))


SHIFTS = [
	[0.],
	[1., 2., 3.],
	[1 + 1j, 1 - 1j, 0.5],
	[1., 1., 2.],
	[1 + 2j, 1 - 2j, 1 + 2j, 1 - 2j, 0.1],
	[2 + 1j, 2 - 1j, 1 + 3j, 1 - 3j],
]


@pytest.mark.parametrize("s0", SHIFTS)
@pytest.mark.parametrize("descriptor", [False, True])
def test_siso(s0, descriptor):
	H = build_random(20, 1, 1, seed = 0, descriptor = descriptor)
	V, Rsylv, W, Lsylv = arnoldi(H.E, H.A, H.B, s0)
	assert W is None and Lsylv is None
	assert V.shape == (20, len(s0))
	assert Rsylv.shape == (1, len(s0))

	# Orthonormal in the E inner product for SPD E
	M = V.T @ H.E @ V if descriptor else V.T @ V
	assert np.allclose(M, np.eye(len(s0)), atol = 1e-8)
	check_sylvester(H, V, Rsylv, s0)


@pytest.mark.parametrize("s0", SHIFTS)
def test_hermite(s0):
	H = build_random(20, 1, 1, seed = 1)
	V, Rsylv, W, Lsylv = arnoldi(H.E, H.A, H.B, s0, C = H.C)
	assert np.allclose(W.T @ W, np.eye(len(s0)), atol = 1e-8)
	check_sylvester(H, V, Rsylv, s0)
	check_sylvester(H.T, W, Lsylv, s0)

	# Two sided projection matches twice as many moments
	Hr = H.project(V, W)
	for s in np.unique(s0):
		k = 2*np.sum(np.array(s0) == s)
		M = H.moments(s, k)
		Mr = Hr.moments(s, k)
		assert np.allclose(M, Mr, rtol = 1e-6, atol = 1e-10)


def test_block():
	H = build_random(30, 2, 2, seed = 2)
	s0 = [1., 1 + 1j, 1 - 1j]
	V, Rsylv, W, Lsylv = arnoldi(H.E, H.A, H.B, s0, C = H.C)
	# Block Krylov: one column per input and shift
	assert V.shape == (30, 6)
	assert W.shape == (30, 6)
	assert np.allclose(V.T @ V, np.eye(6), atol = 1e-8)
	check_sylvester(H, V, Rsylv, np.repeat(s0, 2))

	Hr = H.project(V, W)
	z = np.array(s0)
	Hz, Hpz = H.transfer(z, der = True)
	Hrz, Hrpz = Hr.transfer(z, der = True)
	assert np.allclose(Hz, Hrz)
	assert np.allclose(Hpz, Hrpz)


def test_block_hermite_nonsquare():
	H = build_random(10, 2, 3, seed = 3)
	with pytest.raises(ValueError):
		arnoldi(H.E, H.A, H.B, [1., 2.], C = H.C)


def test_tangential():
	H = build_random(30, 3, 2, seed = 4)
	rng = np.random.RandomState(0)
	s0 = np.array([0.5, 1 + 1j, 1 - 1j, 2.])
	R = rng.randn(3, 4)
	L = rng.randn(2, 4)
	# Directions of a complex pair are conjugate
	R[:,2] = R[:,1]
	L[:,2] = L[:,1]
	V, Rsylv, W, Lsylv = arnoldi(H.E, H.A, H.B, s0, C = H.C, R = R, L = L)
	assert V.shape == (30, 4)
	check_sylvester(H, V, Rsylv, s0)
	check_sylvester(H.T, W, Lsylv, s0)

	Hr = H.project(V, W)
	for s, r, l in zip(s0, R.T, L.T):
		Hz, Hpz = H.transfer(s, der = True)
		Hrz, Hrpz = Hr.transfer(s, der = True)
		if np.imag(s) < 0:
			r, l = r.conj(), l.conj()
		assert np.allclose(Hz[0] @ r, Hrz[0] @ r)
		assert np.allclose(l @ Hz[0], l @ Hrz[0])
		assert np.allclose(l @ Hpz[0] @ r, l @ Hrpz[0] @ r)


def test_directions_shape():
	H = build_random(10, 2, 2, seed = 5)
	with pytest.raises(ValueError):
		arnoldi(H.E, H.A, H.B, [1., 2.], R = np.ones((2, 3)))
	with pytest.raises(ValueError):
		arnoldi(H.E, H.A, H.B, [1., 2.], R = np.ones((3, 2)))
	with pytest.raises(ValueError):
		arnoldi(H.E, H.A, H.B, [1., 2.], C = H.C, R = np.ones((2, 2)))


def test_s0_shape():
	H = build_random(10, 1, 1, seed = 6)
	with pytest.raises(ValueError):
		arnoldi(H.E, H.A, H.B, np.ones((2, 2)))
	# Row and column vectors are accepted
	V1 = arnoldi(H.E, H.A, H.B, np.array([[1., 2.]]))[0]
	V2 = arnoldi(H.E, H.A, H.B, np.array([[1.], [2.]]))[0]
	assert np.allclose(V1, V2)


def test_reorth():
	H = build_rc_ladder(100)
	s0 = np.logspace(-1, 1, 8)
	V, Rsylv, _, _ = arnoldi(H.E, H.A, H.B, s0, reorth = 'gs')
	assert np.allclose(V.T @ V, np.eye(8), atol = 1e-8)
	check_sylvester(H, V, Rsylv, s0)

	Vqr, Rqr, _, _ = arnoldi(H.E, H.A, H.B, s0, reorth = 'qr')
	assert Rqr is None
	assert np.allclose(Vqr.T @ Vqr, np.eye(8), atol = 1e-8)
	# Same subspace
	assert np.allclose(Vqr @ (Vqr.T @ V), V, atol = 1e-6)

	with pytest.raises(ValueError):
		arnoldi(H.E, H.A, H.B, s0, reorth = 'svd')


def test_sparse_descriptor():
	H = build_random(25, 1, 1, seed = 7, descriptor = True)
	A = ss.csc_matrix(H.A)
	E = ss.csc_matrix(H.E)
	s0 = [1 + 1j, 1 - 1j, 3.]
	V, Rsylv, _, _ = arnoldi(E, A, H.B, s0)
	Vd, Rd, _, _ = arnoldi(H.E, H.A, H.B, s0)
	assert np.allclose(V, Vd)
	assert np.allclose(Rsylv, Rd)


def test_infinite_shift():
	# Markov parameters: C (E^{-1} A)^k E^{-1} B
	H = build_random(15, 1, 1, seed = 8, descriptor = True)
	V, _, W, _ = arnoldi(H.E, H.A, H.B, [np.inf, np.inf], C = H.C)
	Hr = H.project(V, W)
	Einv = np.linalg.inv(H.E)
	Eri = np.linalg.inv(Hr.E)
	for k in range(4):
		mk = H.C @ np.linalg.matrix_power(Einv @ H.A, k) @ Einv @ H.B
		mrk = Hr.C @ np.linalg.matrix_power(Eri @ Hr.A, k) @ Eri @ Hr.B
		assert np.allclose(mk, mrk)


def test_exhausted():
	# B is an eigenvector: the Krylov subspace has dimension one
	H = build_diagonal([-1, -2, -3], B = np.array([[1.], [0.], [0.]]))
	with pytest.raises(LinAlgError):
		arnoldi(H.E, H.A, H.B, [1., 2.])


def test_gram_schmidt():
	rng = np.random.RandomState(0)
	n, q = 20, 3
	H = build_random(n, 2, 1, seed = 9)
	s0 = np.array([0.5, 2., 5.])
	# A basis satisfying A X - X S - B R = 0 that is not orthonormal
	X = np.hstack([np.linalg.solve(H.A - s*np.eye(n), H.B[:,0:1]) for s in s0])
	S = np.diag(s0)
	R = np.zeros((2, q))
	R[0] = 1
	X, S, R = gram_schmidt(X, S = S, R = R)
	assert np.allclose(X.T @ X, np.eye(q))
	assert np.allclose(H.A @ X - X @ S - H.B @ R, 0, atol = 1e-8)
	assert np.allclose(np.sort(np.linalg.eigvals(S).real), np.sort(s0))

	# Only the trailing columns
	Y = rng.randn(n, 3)
	Y[:,:2] = np.linalg.qr(Y[:,:2])[0]
	Y2, _, _ = gram_schmidt(Y, cols = [2])
	assert np.allclose(Y2[:,:2], Y[:,:2])
	assert np.allclose(Y2.T @ Y2, np.eye(3))


if __name__ == '__main__':
	test_tangential()
