import numpy as np
import scipy.linalg
from collections import namedtuple

from .system import LinearSystem
from .shifts import s0_vect
from .krylov import arnoldi


__all__ = ['rk', 'RKResult']


RKResult = namedtuple('RKResult', ['sysr', 'V', 'W', 'B_', 'Rsylv', 'C_', 'Lsylv'])


def _canonical(s0, D, name):
	# Sort shifts; tangential directions follow their shifts
	s0 = np.array(s0)
	if D is not None:
		D = np.array(D)
		if D.ndim == 1:
			D = D.reshape(1, -1)
		if s0.ndim == 2 and s0.shape[0] == 2 and D.shape[1] == s0.shape[1]:
			# One direction per distinct shift in the two-row notation
			D = np.repeat(D, s0[1].real.astype(int), axis = 1)
	s0, I = s0_vect(s0, return_index = True)
	if D is not None:
		if D.shape[1] != len(s0):
			raise ValueError("%s must have the same number of columns as s0" % name)
		D = D[:,I]
	return s0, D


def rk(sys, s0_in = None, s0_out = None, Rt = None, Lt = None, inner_product = 'auto', reorth = 'gs', solver = None):
	r""" Model order reduction by rational Krylov subspaces

	Projects :code:`sys` onto rational Krylov subspaces so that the reduced
	model interpolates the transfer function (or its moments) at the given
	expansion points:

	* only :code:`s0_in`: one-sided (Galerkin) projection, :math:`\mathbf{W}=\mathbf{V}`
	* only :code:`s0_out`: one-sided projection onto the output subspace, :math:`\mathbf{V}=\mathbf{W}`
	* equal :code:`s0_in` and :code:`s0_out`: Hermite interpolation, both bases
	  from a single pass over the shifts
	* different :code:`s0_in` and :code:`s0_out`: two-sided projection

	The reduced system is

	.. math::

		\mathbf{E}_r = \mathbf{W}^\top\mathbf{E}\mathbf{V}, \
		\mathbf{A}_r = \mathbf{W}^\top\mathbf{A}\mathbf{V}, \
		\mathbf{B}_r = \mathbf{W}^\top\mathbf{B}, \
		\mathbf{C}_r = \mathbf{C}\mathbf{V}, \
		\mathbf{D}_r = \mathbf{D}.

	Parameters
	----------
	sys: LinearSystem
		Full order model
	s0_in: array-like, optional
		Expansion points for the input Krylov subspace; a vector or the
		two-row notation of shifts and multiplicities
	s0_out: array-like, optional
		Expansion points for the output Krylov subspace
	Rt: array-like (m,q), optional
		Right tangential directions
	Lt: array-like (p,q), optional
		Left tangential directions
	inner_product: ['auto', 'E', 'euclidean'] or callable
		Passed to :func:`krylovmor.krylov.arnoldi`
	reorth: ['gs', 'qr', None]
		Passed to :func:`krylovmor.krylov.arnoldi`
	solver: ShiftedSolver, optional
		Factorization cache for the input side (and Hermite pass)

	Returns
	-------
	RKResult
		namedtuple :code:`(sysr, V, W, B_, Rsylv, C_, Lsylv)`, where
		:code:`B_` and :code:`C_` are the right hand sides of the Sylvester equations
		:math:`\mathbf{A}\mathbf{V} - \mathbf{E}\mathbf{V}\mathbf{S}_V - \mathbf{B}_\perp\mathbf{R}_{sylv} = \mathbf{0}`;
		entries that do not apply are None
	"""
	if not isinstance(sys, LinearSystem):
		raise ValueError("sys must be a LinearSystem")
	if s0_in is None and s0_out is None:
		raise ValueError("At least one of s0_in and s0_out must be given")

	E, A, B, C = sys.E, sys.A, sys.B, sys.C
	if s0_in is not None:
		s0_in, Rt = _canonical(s0_in, Rt, 'Rt')
	if s0_out is not None:
		s0_out, Lt = _canonical(s0_out, Lt, 'Lt')

	if s0_in is not None and s0_out is not None:
		# Block Krylov adds one column per input (output) and shift
		q_in = len(s0_in)*(1 if Rt is not None else sys.m)
		q_out = len(s0_out)*(1 if Lt is not None else sys.p)
		if q_in != q_out:
			raise ValueError("Input and output Krylov subspaces differ in dimension (%d and %d); "
				"give both Rt and Lt or neither" % (q_in, q_out))

	V = W = Rsylv = Lsylv = None
	if s0_in is not None and s0_out is not None:
		hermite = len(s0_in) == len(s0_out) and np.all(s0_in == s0_out) \
			and (Rt is None) == (Lt is None) and (Rt is not None or sys.m == sys.p)
		if hermite:
			V, Rsylv, W, Lsylv = arnoldi(E, A, B, s0_in, C = C, R = Rt, L = Lt,
				inner_product = inner_product, reorth = reorth, solver = solver)
		else:
			V, Rsylv, _, _ = arnoldi(E, A, B, s0_in, R = Rt,
				inner_product = inner_product, reorth = reorth, solver = solver)
			W, Lsylv, _, _ = arnoldi(E.T, A.T, C.T, s0_out, R = Lt,
				inner_product = inner_product, reorth = reorth)
	elif s0_in is not None:
		V, Rsylv, _, _ = arnoldi(E, A, B, s0_in, R = Rt,
			inner_product = inner_product, reorth = reorth, solver = solver)
	else:
		W, Lsylv, _, _ = arnoldi(E.T, A.T, C.T, s0_out, R = Lt,
			inner_product = inner_product, reorth = reorth)

	one_sided_out = V is None
	if V is None:
		V = W
	if W is None:
		W = V
	sysr = sys.project(V, W)

	B_ = C_ = None
	if not one_sided_out:
		B_ = B - (E @ V) @ scipy.linalg.solve(sysr.E, sysr.B)
	if s0_out is not None:
		C_ = C - scipy.linalg.solve(sysr.E.T, sysr.C.T).T @ (E.T @ W).T
	return RKResult(sysr, V, W, B_, Rsylv, C_, Lsylv)
