#!/usr/bin/env python3

import math
from typing import Union, Iterable, Optional

import numpy as np


DEFAULT_EPS = 1.0e-9


def _approx_equal_abs(val1: float, val2: float, eps: float) -> bool:
	return abs(val1 - val2) < eps


def _approx_equal_rel(val1: float, val2: float, eps: float) -> bool:
	"""
	Relative error, symmetric in its arguments

	(x0 - x) / x depends on which value is taken as the true one, so compare in log space instead:
		err = 2^abs(log2(val1) - log2(val2)) - 1
	which is always the larger of the two possible relative errors
	"""

	if val1 == val2 == 0.0:
		return True
	elif (val1 == 0.0) or (val2 == 0.0):
		return False
	elif (val1 > 0) != (val2 > 0):
		return False

	err = 2 ** abs(math.log2(abs(val1)) - math.log2(abs(val2))) - 1
	return err < eps


def approx_equal_scalar(
		val1: Union[int, float],
		val2: Union[int, float],
		eps: Union[int, float]=DEFAULT_EPS,
		rel=False,
		abs_rel=False) -> bool:
	"""
	Compare 2 values for equality within threshold

	:param eps: comparison threshold
	:param rel: compare relative error instead of absolute error
	:param abs_rel: return True as long as relative *or* absolute is within eps
		(e.g. useful for values that may be close to zero)
	:return: True if values are within eps of each other

	:note: NaN is never approximately equal to anything, including NaN
	"""

	if abs_rel and rel:
		raise ValueError('Cannot set both abs_rel and rel!')

	if math.isnan(val1) or math.isnan(val2):
		return False

	if math.isinf(val1) or math.isinf(val2):
		return val1 == val2

	if (abs_rel or not rel) and _approx_equal_abs(val1, val2, eps):
		return True

	if (abs_rel or rel) and _approx_equal_rel(val1, val2, eps):
		return True

	return False


def approx_equal(
		val1: Union[int, float, np.ndarray, Iterable],
		val2: Union[int, float, np.ndarray, Iterable],
		eps: Union[int, float]=DEFAULT_EPS,
		rel=False,
		abs_rel=False,
		nan_equal=False) -> bool:
	"""
	Compare 2 values and/or sequences for equality within threshold

	A scalar compared against a sequence is compared against every element

	:param nan_equal: treat NaN as equal to NaN (e.g. for undefined entries in rate sequences)
	"""

	kwargs = dict(eps=eps, rel=rel, abs_rel=abs_rel)

	if np.isscalar(val1) and np.isscalar(val2):
		if nan_equal and math.isnan(val1) and math.isnan(val2):
			return True
		return approx_equal_scalar(val1, val2, **kwargs)

	vec1, vec2 = np.broadcast_arrays(np.asarray(val1, dtype=float), np.asarray(val2, dtype=float))

	if vec1.ndim != 1:
		raise ValueError('Only scalars and 1-dimensional sequences are supported')

	return all([
		(nan_equal and math.isnan(v1) and math.isnan(v2)) or approx_equal_scalar(v1, v2, **kwargs)
		for v1, v2 in zip(vec1, vec2)])


_unit_tests = []


def _test_scalar():

	# abs
	assert approx_equal(1, 1 + 1e-12)
	assert not approx_equal(1, 1.001)
	assert approx_equal(1, 1.1, eps=0.11)
	assert approx_equal(1.0e-9, 1.1e-9)

	# rel
	assert approx_equal(1, 1.0000001, rel=True, eps=0.0001)
	assert approx_equal(1.0, 1.1, rel=True, eps=0.11)
	assert approx_equal(1.1, 1.0, rel=True, eps=0.11)
	assert not approx_equal(1.0, 1.1, rel=True, eps=0.09999999)
	assert not approx_equal(1.1, 1.0, rel=True, eps=0.09999999)
	assert not approx_equal(1.0e-9, 1.1e-9, rel=True)
	assert approx_equal(1.0e-9, 1.1e-9, abs_rel=True)

	# Irrational numbers
	assert approx_equal(math.pi, 3.1415926, eps=0.000001)
	assert not approx_equal(math.pi, 3.1415926, eps=0.00000001)

	# Zero & sign
	assert not approx_equal(1e-12, 0.0, rel=True, eps=99999999999999.9)
	assert not approx_equal(-1e-10, 1e-10, rel=True)
	assert approx_equal(-1e-10, 1e-10)


_unit_tests.append(_test_scalar)


def _test_non_finite():
	nan = float('nan')
	inf = float('inf')

	assert not approx_equal(nan, nan)
	assert not approx_equal(nan, 1.0, eps=1e9)
	assert approx_equal(nan, nan, nan_equal=True)
	assert not approx_equal(nan, 1.0, nan_equal=True)

	assert approx_equal(inf, inf)
	assert not approx_equal(inf, -inf)
	assert not approx_equal(inf, 1e308, rel=True, eps=1e9)


_unit_tests.append(_test_non_finite)


def _test_vector():
	assert approx_equal([1.0, 2.0, 3.0], np.array([1.0, 2.0 + 1e-12, 3.0]))
	assert not approx_equal([1.0, 2.0, 3.0], [1.0, 2.1, 3.0])
	assert approx_equal(1.0, [1.0, 0.9999999999, 1.0000000001])
	assert not approx_equal([0.9, 1.0, 1.1], 1.0, eps=0.1)

	assert not approx_equal([float('nan'), 1.0], [float('nan'), 1.0])
	assert approx_equal([float('nan'), 1.0], [float('nan'), 1.0], nan_equal=True)

	try:
		approx_equal([1.0, 2.0], [1.0, 2.0, 3.0])
	except ValueError:
		pass
	else:
		raise AssertionError('Expected mismatched lengths to raise')


_unit_tests.append(_test_vector)


def test(verbose=False):
	from unit_test import unit_test
	return unit_test.run_unit_tests(_unit_tests, verbose=verbose)


def main(args):
	test(verbose=args.verbose)
