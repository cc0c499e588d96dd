import numpy as np
import scipy.sparse as ss

from krylovmor import *
from krylovmor.demos import build_diagonal, build_random, build_rc_ladder

import pytest


def make_systems():
	Hdiag = build_diagonal([-1, -2, -3])
	Hrand = build_random(20, 2, 3, seed = 0)
	Hdesc = build_random(20, 1, 1, seed = 1, descriptor = True)
	Hsparse = build_rc_ladder(30, sparse = True)
	return [Hdiag, Hrand, Hdesc, Hsparse]


def test_dimensions():
	A = np.diag([-1., -2., -3.])
	H = LinearSystem(A, np.ones(3), np.ones(3))
	assert H.n == 3 and H.m == 1 and H.p == 1
	assert H.B.shape == (3, 1)
	assert H.C.shape == (1, 3)
	assert np.all(H.D == 0)
	assert np.array_equal(H.E, np.eye(3))
	assert not H.is_descriptor
	assert H.is_siso

	with pytest.raises(ValueError):
		LinearSystem(A, np.ones((4, 1)), np.ones((1, 3)))
	with pytest.raises(ValueError):
		LinearSystem(A, np.ones((3, 1)), np.ones((1, 2)))
	with pytest.raises(ValueError):
		LinearSystem(A, np.ones((3, 1)), np.ones((1, 3)), E = np.eye(2))
	with pytest.raises(ValueError):
		LinearSystem(np.ones((3, 2)), np.ones((3, 1)), np.ones((1, 3)))


def test_immutable():
	H = build_diagonal([-1, -2, -3])
	with pytest.raises(ValueError):
		H.B[0, 0] = 10


@pytest.mark.parametrize("H", make_systems())
def test_transfer(H):
	z = np.array([0.5, 1 + 2j, 3j])
	Hz, Hpz = H.transfer(z, der = True)
	assert Hz.shape == (3, H.p, H.m)

	E = H.E.toarray() if ss.issparse(H.E) else H.E
	A = H.A.toarray() if ss.issparse(H.A) else H.A
	for k, zk in enumerate(z):
		Hz_true = H.C @ np.linalg.solve(zk*E - A, H.B) + H.D
		assert np.allclose(Hz[k], Hz_true)

	# Derivative by finite differences
	h = 1e-6
	Hz_h = H.transfer(z + h)
	assert np.allclose((Hz_h - Hz)/h, Hpz, atol = 1e-4, rtol = 1e-4)


def test_moments():
	H = build_diagonal([-1, -2, -3])
	M = H.moments(0, k = 3)
	# H(s) = sum 1/(s - lam); M_j = -sum lam^{-(j+1)}
	lam = np.array([-1., -2., -3.])
	for j in range(3):
		assert np.allclose(M[j], -np.sum(lam**(-(j+1))))

	with pytest.raises(ValueError):
		H.moments(np.inf)


def test_norm():
	# H2 norm of sum_i 1/(s - lam_i) with B = C = 1
	lam = np.array([-1., -2., -3.])
	H = build_diagonal(lam)
	norm2 = -np.sum(1./(lam.reshape(-1, 1) + lam.reshape(1, -1)))
	assert np.isclose(H.norm(), np.sqrt(norm2))

	Hunstable = build_diagonal([1, -2])
	assert Hunstable.norm() == np.inf


@pytest.mark.parametrize("H", make_systems())
def test_add_sub(H):
	z = np.array([1j, 2.])
	assert np.allclose((H - H).transfer(z), 0)
	assert np.allclose((H + H).transfer(z), 2*H.transfer(z))


def test_combine_mismatch():
	H1 = build_random(5, 1, 1)
	H2 = build_random(5, 2, 1)
	with pytest.raises(ValueError):
		H1 - H2


@pytest.mark.parametrize("H", make_systems())
def test_transpose(H):
	z = np.array([1j, 2.])
	Hz = H.transfer(z)
	HTz = H.T.transfer(z)
	for k in range(len(z)):
		assert np.allclose(Hz[k].T, HTz[k])


def test_getitem():
	H = build_random(10, 2, 3, seed = 2)
	H12 = H[1, 0]
	assert H12.shape == (1, 1)
	z = np.array([1j])
	assert np.allclose(H12.transfer(z)[0, 0, 0], H.transfer(z)[0, 1, 0])


def test_project_identity():
	# Projecting onto the whole space does not change the transfer function
	H = build_random(8, 1, 2, seed = 3, descriptor = True)
	Q, _ = np.linalg.qr(np.random.RandomState(0).randn(8, 8))
	Hr = H.project(Q)
	z = np.array([0.3, 1 + 1j])
	assert np.allclose(Hr.transfer(z), H.transfer(z))


def test_poles_descriptor():
	H = build_random(15, 1, 1, seed = 4, descriptor = True)
	lam = H.poles()
	assert np.all(lam.real < 0)
	assert H.isstable()


if __name__ == '__main__':
	test_transfer(make_systems()[2])
