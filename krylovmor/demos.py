import numpy as np
import scipy.sparse as ss
from .system import LinearSystem


__all__ = ['build_diagonal', 'build_rc_ladder', 'build_random', 'build_symmetric']


def build_diagonal(poles, B = None, C = None):
	r""" System with a diagonal state matrix

	Parameters
	----------
	poles: array-like (n,)
		Real poles, the diagonal of A
	B: array-like (n,m), optional
		Defaults to a column of ones
	C: array-like (p,n), optional
		Defaults to a row of ones
	"""
	poles = np.array(poles, dtype = float).flatten()
	n = len(poles)
	if B is None:
		B = np.ones((n, 1))
	if C is None:
		C = np.ones((1, n))
	return LinearSystem(np.diag(poles), B, C)


def build_rc_ladder(n = 100, sparse = True):
	r""" RC ladder network

	A chain of :math:`n` nodes, each with unit capacitance to ground and unit
	resistance to its neighbours; the last node is grounded through a resistor.
	The input is a current injected at the first node and the output is the
	voltage at that node, so the system is state-space symmetric with real,
	negative poles.

	Parameters
	----------
	n: int
		Number of nodes
	sparse: bool
		If True, A is stored as a sparse matrix
	"""
	main = -2*np.ones(n)
	main[0] = -1
	off = np.ones(n-1)
	A = ss.diags([off, main, off], [-1, 0, 1], format = 'csc')
	if not sparse:
		A = A.toarray()
	B = np.zeros((n, 1))
	B[0] = 1
	return LinearSystem(A, B, B.T)


def build_random(n = 50, m = 1, p = 1, seed = 0, descriptor = False):
	r""" Random stable system

	The state matrix :math:`\mathbf{A} = \mathbf{S} - \mathbf{K}\mathbf{K}^\top - \mathbf{I}`
	with skew-symmetric :math:`\mathbf{S}` has a negative definite symmetric part,
	so the system is stable for any symmetric positive definite :math:`\mathbf{E}`
	and generally has complex poles.

	Parameters
	----------
	n, m, p: int
		Number of states, inputs and outputs
	seed: int
		Seed of the random number generator
	descriptor: bool
		If True, include a random symmetric positive definite E
	"""
	rng = np.random.RandomState(seed)
	S = rng.randn(n, n)
	S = S - S.T
	K = rng.randn(n, n)/np.sqrt(n)
	A = S - K @ K.T - np.eye(n)
	B = rng.randn(n, m)
	C = rng.randn(p, n)
	E = None
	if descriptor:
		N = rng.randn(n, n)/np.sqrt(n)
		E = N @ N.T + np.eye(n)
		E = 0.5*(E + E.T)
	return LinearSystem(A, B, C, E = E)


def build_symmetric(n = 50, seed = 0):
	r""" Random state-space symmetric SISO system

	:math:`\mathbf{A}` is symmetric negative definite and :math:`\mathbf{C} = \mathbf{B}^\top`,
	so all poles are real and IRKA has real shifts.
	"""
	rng = np.random.RandomState(seed)
	M = rng.randn(n, n)
	A = -(M @ M.T)/n - 0.1*np.eye(n)
	A = 0.5*(A + A.T)
	B = rng.randn(n, 1)
	return LinearSystem(A, B, B.T)
