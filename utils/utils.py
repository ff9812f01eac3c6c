#!/usr/bin/env python3

import math
from typing import Union

import numpy as np

from unit_test.unit_test import test_approx_equal

_unit_tests = []


def to_pretty_str(val, num_decimals=6, point_zero=True) -> str:
	"""Convert float into nicely formatted string

	If another type is given, just calls str(val)
	"""

	if isinstance(val, float) or isinstance(val, np.floating):
		if not math.isfinite(val):
			return str(float(val))
		fmt = '%%.%if' % num_decimals
		s = fmt % val
		while s.endswith('0'):
			s = s[:-1]
		if s.endswith('.'):
			if point_zero:
				s = s + '0'
			else:
				s = s[:-1]
		return s
	else:
		return str(val)


def _test_to_pretty_str():
	assert to_pretty_str(1) == '1'
	assert to_pretty_str(-12345.0) == '-12345.0'
	assert to_pretty_str(-12345.0, point_zero=False) == '-12345'
	assert to_pretty_str(1.00000001) == '1.0'
	assert to_pretty_str(0.12345678) == '0.123457'
	assert to_pretty_str(0.12, num_decimals=2) == '0.12'
	assert to_pretty_str(float('nan')) == 'nan'
	assert to_pretty_str(float('-inf')) == '-inf'
	assert to_pretty_str('f1') == 'f1'


_unit_tests.append(_test_to_pretty_str)


def sgn_tie_negative(x: Union[float, int]) -> int:
	"""Sign of x, where zero counts as negative

	Not the usual convention - bisection relies on this to pick a side when f(c) is exactly zero
	"""
	return 1 if x > 0 else -1


def _test_sgn_tie_negative():
	assert sgn_tie_negative(2.0) == 1
	assert sgn_tie_negative(1e-300) == 1
	assert sgn_tie_negative(-2.0) == -1
	assert sgn_tie_negative(0.0) == -1
	assert sgn_tie_negative(-0.0) == -1

	# NaN compares false, so also lands on the negative side
	assert sgn_tie_negative(float('nan')) == -1


_unit_tests.append(_test_sgn_tie_negative)


def midpoint(a, b):
	# a + (b - a) / 2 rather than (a + b) / 2, so it won't overflow for huge a & b
	return a + (b - a) / 2


def _test_midpoint():
	test_approx_equal(midpoint(1.5, 2.5), 2.0)
	test_approx_equal(midpoint(2.5, 1.5), 2.0)
	test_approx_equal(midpoint(-1.0, 1.0), 0.0)
	assert math.isfinite(midpoint(1e308, 1.7e308))
	test_approx_equal(midpoint(1e308, 1.5e308), 1.25e308, rel=True)


_unit_tests.append(_test_midpoint)


def test(verbose=False):
	from unit_test import unit_test
	return unit_test.run_unit_tests(_unit_tests, verbose=verbose)


def main(args):
	test(verbose=args.verbose)
