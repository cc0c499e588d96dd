import numpy as np
import warnings

from krylovmor import (ModelFunction, model_fct_mor, CIRKA, cirka, IRKA, irka, rk, hungarian_norm,
	ModelFunctionSizeWarning, ModelFunctionNotConvergedWarning, IRKANotConvergedWarning)
from krylovmor.demos import build_symmetric, build_random

import pytest


def irka_reduce(sysm, s0):
	with warnings.catch_warnings():
		warnings.simplefilter('ignore', IRKANotConvergedWarning)
		sysr, V, W, s0, s0_traj = irka(sysm, s0, maxiter = 200, epsilon = 1e-8, stop_crit = 's0')
	return sysr, s0


def test_model_function():
	H = build_random(40, 1, 1, seed = 0)
	model = ModelFunction(H)
	assert model.order == 0
	assert model.columns([0.5, 1 + 1j, 1 - 1j]) == 3

	model.update([0.5, 1 + 1j, 1 - 1j])
	assert model.order == 3
	assert model.nshifts == 3
	assert np.allclose(model.V.T @ model.V, np.eye(3))
	assert np.allclose(model.W.T @ model.W, np.eye(3))

	# The model function is a Hermite interpolant at every shift
	sysm = model.sysm
	Hz, Hpz = H.transfer(model.s0m, der = True)
	Hmz, Hmpz = sysm.transfer(model.s0m, der = True)
	assert np.allclose(Hz, Hmz)
	assert np.allclose(Hpz, Hmpz)

	# Growing keeps the old columns and invalidates the cached system
	V_old = model.V.copy()
	model.update([2.])
	assert model.order == 4
	assert np.allclose(model.V[:,:3], V_old)
	assert model.sysm.n == 4
	assert np.allclose(H.transfer(2.), model.sysm.transfer(2.))


def test_model_function_moments():
	H = build_symmetric(30, seed = 1)
	model = ModelFunction(H)
	# Two-row notation: three moments at zero
	model.update([[0.], [3]])
	assert model.order == 3
	assert np.allclose(model.s0m, 0)
	M = H.moments(0., 6)
	Mm = model.sysm.moments(0., 6)
	assert np.allclose(M, Mm, rtol = 1e-6)


def test_model_function_one_sided():
	H = build_random(30, 2, 1, seed = 2)
	model = ModelFunction(H)
	assert not model.two_sided
	model.update([1., 2.])
	# One block of columns per shift
	assert model.order == 4
	assert model.W is None
	z = np.array([1., 2.])
	assert np.allclose(H.transfer(z), model.sysm.transfer(z))


def test_model_fct_mor():
	H = build_symmetric(100, seed = 3)
	s0 = [1., 2., 3.]
	sysr, s0_new, model, converged = model_fct_mor(H, irka_reduce, s0, maxiter = 20, tol = 1e-6,
		full_output = True)
	assert converged
	assert sysr.n == 3
	assert model.order < H.n

	# The model function interpolates the original system at the final shifts,
	# so the result is also an IRKA fixed point for the original system
	sysr_full, s0_full = irka_reduce(H, s0)
	assert hungarian_norm(s0_new, s0_full) < 1e-4*np.linalg.norm(s0_full)


def test_size_limit():
	H = build_symmetric(20, seed = 4)
	s0m = np.logspace(-1, 1, 15)
	reduced = []

	def drifting_reduce(sysm, s0):
		# Shifts that never settle
		reduced.append(sysm)
		return rk(sysm, s0).sysr, 1.5*np.asarray(s0)

	with pytest.warns(ModelFunctionSizeWarning) as record:
		sysr, s0, model, converged = model_fct_mor(H, drifting_reduce, [1., 2., 3.], s0m = s0m, tol = 1e-6,
			maxiter = 10, full_output = True)
	assert len([w for w in record if w.category is ModelFunctionSizeWarning]) == 1
	# 15 initial columns, one update by three shifts, then the original model
	assert [sysm.n for sysm in reduced] == [15, 18, 20]
	assert reduced[-1] is H
	assert model.order == 18
	assert sysr.n == 3
	assert np.allclose(s0, [1.5**3, 2*1.5**3, 3*1.5**3])
	assert not converged


def test_not_converged():
	H = build_symmetric(30, seed = 5)
	with pytest.warns(ModelFunctionNotConvergedWarning):
		sysr, s0 = model_fct_mor(H, irka_reduce, [1., 2.], maxiter = 1, tol = 1e-15)
	assert len(s0) == 2


def test_initial_size():
	H = build_symmetric(20, seed = 6)
	with pytest.raises(ValueError):
		model_fct_mor(H, irka_reduce, [1.], qm0 = 20)


def test_cirka():
	H = build_symmetric(100, seed = 3)
	s0 = [1., 2., 3.]
	irka_options = dict(maxiter = 200, epsilon = 1e-8)
	with warnings.catch_warnings():
		warnings.simplefilter('ignore', IRKANotConvergedWarning)
		mor = CIRKA(maxiter = 20, tol = 1e-6, irka_options = irka_options).fit(H, s0)
		ref = IRKA(stop_crit = 's0', **irka_options).fit(H, s0)
	assert mor.converged
	assert mor.sysr.n == 3
	assert mor.iterations == len(mor.s0_traj) - 1
	assert mor.sysm.n == mor.model_function.order
	assert hungarian_norm(mor.s0, ref.s0) < 1e-4*np.linalg.norm(ref.s0)

	# Same reduced model as IRKA on the full system
	err = (mor.sysr - ref.sysr).norm()/ref.sysr.norm()
	assert err < 1e-3


def test_cirka_function_form():
	H = build_symmetric(60, seed = 7)
	with warnings.catch_warnings():
		warnings.simplefilter('ignore')
		sysr, s0 = cirka(H, [0.5, 1.], irka_options = dict(maxiter = 100))
	assert sysr.n == 2
	assert len(s0) == 2


def test_cirka_options():
	with pytest.raises(ValueError):
		CIRKA(maxiter = 0)
	with pytest.raises(ValueError):
		CIRKA(tol = 0)
	with pytest.raises(ValueError):
		CIRKA(irka_options = dict(stop_crit = 'norm'))


def test_verbose(capsys):
	H = build_symmetric(30, seed = 8)
	model_fct_mor(H, irka_reduce, [1., 2.], maxiter = 3, tol = 1e-4, verbose = True)
	out = capsys.readouterr().out
	assert 'qm' in out


if __name__ == '__main__':
	test_cirka()
