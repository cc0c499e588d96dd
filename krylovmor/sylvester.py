r""" Sylvester equations of Krylov projections and pseudo-optimal reduced models

A Krylov basis :math:`\mathbf{V}` with reduced model :math:`(\mathbf{E}_r, \mathbf{A}_r, \mathbf{B}_r)`
satisfies the Sylvester equation

.. math::

	\mathbf{A}\mathbf{V} - \mathbf{E}\mathbf{V}\mathbf{S}_V - \mathbf{B}\mathbf{R} = \mathbf{0},

whose matrix :math:`\mathbf{S}_V` has the interpolation points as eigenvalues.
Dually, :math:`\mathbf{W}^\top\mathbf{A} - \mathbf{S}_W\mathbf{W}^\top\mathbf{E} - \mathbf{L}^\top\mathbf{C} = \mathbf{0}`.
"""
import numpy as np
import scipy.linalg
from scipy.linalg import solve_continuous_lyapunov, cho_factor, cho_solve


__all__ = ['get_sylvester', 'sylvester_residual', 'pork_w', 'pork_v']


def get_sylvester(sys, sysr, V, side = 'V'):
	r""" Recover the Sylvester equation of a projection

	For :code:`side='V'`, with :math:`\mathbf{B}_\perp = \mathbf{B} - \mathbf{E}\mathbf{V}\mathbf{E}_r^{-1}\mathbf{B}_r`,
	:math:`\mathbf{R}` is the least squares solution of

	.. math::

		\mathbf{B}_\perp\mathbf{R} = \mathbf{A}\mathbf{V} - \mathbf{E}\mathbf{V}\mathbf{E}_r^{-1}\mathbf{A}_r

	and :math:`\mathbf{S} = \mathbf{E}_r^{-1}(\mathbf{A}_r - \mathbf{B}_r\mathbf{R})`, so that
	:math:`\mathbf{A}\mathbf{V} - \mathbf{E}\mathbf{V}\mathbf{S} - \mathbf{B}\mathbf{R} = \mathbf{0}`.
	For :code:`side='W'` the same is done for the dual systems; the result satisfies
	:math:`\mathbf{W}^\top\mathbf{A} - \mathbf{S}\mathbf{W}^\top\mathbf{E} - \mathbf{L}^\top\mathbf{C} = \mathbf{0}`.

	The residual is not checked here; reconstructions from a numerically computed
	basis are typically accurate to about 1e-4 relative, see :func:`sylvester_residual`.

	Parameters
	----------
	sys: LinearSystem
		Full order model
	sysr: LinearSystem
		Reduced model obtained by projection with V (or W)
	V: np.array (n,q)
		Projection matrix; W if :code:`side='W'`
	side: ['V', 'W']

	Returns
	-------
	R: np.array (m,q)
		L (p,q) for side 'W'
	B_: np.array (n,m)
		C_ (p,n) for side 'W'
	S: np.array (q,q)
	"""
	if side == 'W':
		L, C_, S = get_sylvester(sys.T, sysr.T, V, side = 'V')
		return L, C_.T, S.T
	if side != 'V':
		raise ValueError("side must be 'V' or 'W'")

	Er = np.asarray(sysr.E)
	EV = sys.E @ V
	B_ = sys.B - EV @ scipy.linalg.solve(Er, sysr.B)
	rhs = sys.A @ V - EV @ scipy.linalg.solve(Er, sysr.A)
	R = scipy.linalg.lstsq(B_, rhs)[0]
	S = scipy.linalg.solve(Er, sysr.A - sysr.B @ R)
	return R, B_, S


def sylvester_residual(sys, V, S, R, side = 'V'):
	r""" Spectral norm of the residual of a Sylvester equation

	* V: :math:`\|\mathbf{A}\mathbf{V} - \mathbf{E}\mathbf{V}\mathbf{S} - \mathbf{B}\mathbf{R}\|_2`
	* W: :math:`\|\mathbf{W}^\top\mathbf{A} - \mathbf{S}\mathbf{W}^\top\mathbf{E} - \mathbf{R}^\top\mathbf{C}\|_2` with :code:`V=W`, :code:`R=L`
	"""
	if side == 'V':
		res = sys.A @ V - (sys.E @ V) @ S - sys.B @ R
	elif side == 'W':
		res = (sys.A.T @ V).T - S @ (sys.E.T @ V).T - R.T @ sys.C
	else:
		raise ValueError("side must be 'V' or 'W'")
	return np.linalg.norm(res, 2)


def pork_w(W, S_W, Brt, B):
	r""" Pseudo-optimal reduced model from the output Sylvester equation

	Given :math:`\mathbf{W}^\top\mathbf{A} - \mathbf{S}_W\mathbf{W}^\top\mathbf{E} - \mathbf{B}_{rt}\mathbf{C} = \mathbf{0}`
	with :math:`-\mathbf{S}_W` stable, let :math:`\mathbf{P}` solve

	.. math::

		\mathbf{S}_W\mathbf{P} + \mathbf{P}\mathbf{S}_W^\top = \mathbf{B}_{rt}\mathbf{B}_{rt}^\top.

	The reduced model :math:`\mathbf{C}_r = -\mathbf{B}_{rt}^\top\mathbf{P}^{-1}`,
	:math:`\mathbf{A}_r = \mathbf{S}_W + \mathbf{B}_{rt}\mathbf{C}_r`,
	:math:`\mathbf{B}_r = \mathbf{W}^\top\mathbf{B}`, :math:`\mathbf{E}_r = \mathbf{I}`
	has poles :math:`-\lambda(\mathbf{S}_W)` and is H2 pseudo-optimal.

	Parameters
	----------
	W: np.array (n,q)
	S_W: np.array (q,q)
	Brt: np.array (q,p)
		Transposed left directions :math:`\mathbf{L}^\top` of :func:`get_sylvester` with side 'W'
	B: np.array (n,m)
		Input matrix of the full order model

	Returns
	-------
	Ar, Br, Cr, Er: np.array
	"""
	S_W = np.asarray(S_W)
	Brt = np.asarray(Brt).reshape(S_W.shape[0], -1)
	P = solve_continuous_lyapunov(S_W, Brt @ Brt.T)
	P = 0.5*(P + P.T)
	# Fails if -S_W is not stable
	P_c = cho_factor(P)
	Cr = -cho_solve(P_c, Brt).T
	Ar = S_W + Brt @ Cr
	Br = W.T @ B
	Er = np.eye(Ar.shape[0])
	return Ar, Br, Cr, Er


def pork_v(V, S_V, Crt, C):
	r""" Pseudo-optimal reduced model from the input Sylvester equation

	Dual of :func:`pork_w`: given :math:`\mathbf{A}\mathbf{V} - \mathbf{E}\mathbf{V}\mathbf{S}_V - \mathbf{B}\mathbf{C}_{rt} = \mathbf{0}`,
	:math:`\mathbf{Q}` solves :math:`\mathbf{S}_V^\top\mathbf{Q} + \mathbf{Q}\mathbf{S}_V = \mathbf{C}_{rt}^\top\mathbf{C}_{rt}`
	and :math:`\mathbf{B}_r = -\mathbf{Q}^{-1}\mathbf{C}_{rt}^\top`,
	:math:`\mathbf{A}_r = \mathbf{S}_V + \mathbf{B}_r\mathbf{C}_{rt}`,
	:math:`\mathbf{C}_r = \mathbf{C}\mathbf{V}`, :math:`\mathbf{E}_r = \mathbf{I}`.
	"""
	S_V = np.asarray(S_V)
	Crt = np.asarray(Crt).reshape(-1, S_V.shape[0])
	Q = solve_continuous_lyapunov(S_V.T, Crt.T @ Crt)
	Q = 0.5*(Q + Q.T)
	Q_c = cho_factor(Q)
	Br = -cho_solve(Q_c, Crt.T)
	Ar = S_V + Br @ Crt
	Cr = C @ V
	Er = np.eye(Ar.shape[0])
	return Ar, Br, Cr, Er
