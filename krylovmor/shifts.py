""" Canonical handling of expansion points (shifts)
"""
import numpy as np
from scipy.spatial.distance import cdist
from scipy.optimize import linear_sum_assignment


__all__ = ['hungarian_sort', 'cplxpair', 's0_vect', 'setdiff_vec', 'hungarian_norm']


def _cost(a, b):
	a = np.array(a, dtype = complex).flatten().reshape(-1,1)
	b = np.array(b, dtype = complex).flatten().reshape(-1,1)
	return cdist(np.hstack([a.real, a.imag]), np.hstack([b.real, b.imag]))


def hungarian_sort(a, b):
	r""" Align two vectors using the Hungarian algorithm for an optimal pairing

	Parameters
	----------
	a: np.array((n,))
		List of numbers
	b: np.array((n,))
		List of numbers

	Returns
	-------
	I: np.array((n,))
		permutation such that :math:`\|\mathbf{a} - \mathbf{b}[\mathcal{I}]\|` is minimized
	"""
	a = np.atleast_1d(a)
	b = np.atleast_1d(b)
	assert a.shape == b.shape, "a and b must be the same shape"
	row, col = linear_sum_assignment(_cost(a, b))
	I = np.argsort(row)
	return col[I]


def cplxpair(s0, tol = None, return_index = False):
	r""" Sort shifts into canonical complex conjugate pairs

	Complex conjugate pairs come first, ordered by increasing real part,
	with the member with positive imaginary part first in each pair;
	real shifts follow in ascending order.
	Entries with :math:`|\mathrm{Im}\, s| \le \mathrm{tol}\, |s|` are treated as real
	and their imaginary part is dropped. Partners are averaged so that pairs are
	exact conjugates.

	Parameters
	----------
	s0: array-like (q,)
		Shifts, closed under conjugation up to :code:`tol`
	tol: float, optional
		Relative tolerance; defaults to :code:`100*eps`
	return_index: bool
		If True, also return the permutation applied to :code:`s0`

	Returns
	-------
	s0: np.array (q,)
		Sorted shifts; real dtype if every shift is real
	I: np.array (q,)
		Only if :code:`return_index`; indices into the input such that
		the output is (up to pairing corrections) :code:`s0[I]`
	"""
	s0 = np.atleast_1d(np.array(s0, dtype = complex)).flatten()
	if tol is None:
		tol = 100*np.finfo(float).eps

	is_real = np.abs(s0.imag) <= tol*np.abs(s0)
	idx_real = np.argwhere(is_real).flatten()
	idx_cplx = np.argwhere(~is_real).flatten()

	idx_pos = idx_cplx[s0[idx_cplx].imag > 0]
	idx_neg = idx_cplx[s0[idx_cplx].imag < 0]
	if len(idx_pos) != len(idx_neg):
		raise ValueError("Complex shifts must come in complex conjugate pairs")

	pairs = []
	if len(idx_pos) > 0:
		I = hungarian_sort(s0[idx_pos], s0[idx_neg].conj())
		idx_neg = idx_neg[I]
		mismatch = np.abs(s0[idx_pos] - s0[idx_neg].conj())
		if np.any(mismatch > max(tol, 1e3*np.finfo(float).eps)*np.abs(s0[idx_pos])):
			raise ValueError("Complex shifts must come in complex conjugate pairs")
		for i, j in zip(idx_pos, idx_neg):
			val = 0.5*(s0[i] + s0[j].conjugate())
			pairs.append((val, i, j))
		pairs.sort(key = lambda x: (x[0].real, x[0].imag))

	reals = sorted([(s0[i].real, i) for i in idx_real])

	out = []
	index = []
	for val, i, j in pairs:
		out += [val, val.conjugate()]
		index += [i, j]
	for val, i in reals:
		out.append(val)
		index.append(i)

	out = np.array(out, dtype = complex)
	if len(pairs) == 0:
		out = out.real
	index = np.array(index, dtype = int)

	if return_index:
		return out, index
	return out


def s0_vect(s0, return_index = False):
	r""" Convert shifts to the canonical vector notation

	Accepts either a vector of shifts or the two-row notation, where the first
	row holds distinct shifts and the second row their multiplicities (the
	number of moments to match). Any 2-D input with exactly two rows is read as
	the two-row notation. The result is sorted with :func:`cplxpair`.

	Returns
	-------
	s0: np.array (q,)
	I: np.array (q,)
		Only if :code:`return_index`; the positions of the sorted shifts in the
		expanded (unsorted) vector
	"""
	s0 = np.array(s0)
	if s0.ndim > 2:
		raise ValueError("s0 must be a vector or a two-row matrix of shifts and multiplicities")
	if s0.ndim == 2:
		if s0.shape[0] == 2:
			mult = s0[1].real
			if np.any(mult < 0) or np.any(mult != np.round(mult)) or np.any(s0[1].imag != 0):
				raise ValueError("Multiplicities in the second row of s0 must be nonnegative integers")
			s0 = np.repeat(s0[0], mult.astype(int))
		elif min(s0.shape) == 1:
			s0 = s0.flatten()
		else:
			raise ValueError("s0 must be a vector containing the expansion points")
	return cplxpair(s0, return_index = return_index)


def setdiff_vec(a, b):
	r""" Reorder-tolerant difference between two sets of shifts

	Entries of :code:`a` and :code:`b` are matched by an optimal assignment
	and the matched differences are returned. If the sets differ in length,
	the unmatched entries of the longer one are appended unchanged.
	"""
	a = np.atleast_1d(np.array(a, dtype = complex)).flatten()
	b = np.atleast_1d(np.array(b, dtype = complex)).flatten()
	if len(a) == 0 or len(b) == 0:
		return np.hstack([a, b])
	row, col = linear_sum_assignment(_cost(a, b))
	diff = a[row] - b[col]
	unmatched_a = np.setdiff1d(np.arange(len(a)), row)
	unmatched_b = np.setdiff1d(np.arange(len(b)), col)
	return np.hstack([diff, a[unmatched_a], b[unmatched_b]])


def hungarian_norm(a, b):
	""" 2-norm of the mismatch between two sets of shifts after optimal pairing
	"""
	return np.linalg.norm(setdiff_vec(a, b))
