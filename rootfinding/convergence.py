#!/usr/bin/env python3

"""
Empirical order of convergence

If error_{i+1} ~= C * error_i ^ p, then with d_i = |x_i - x_{i-1}| standing in for the error:

	p ~= ln(d_{i+1} / d_i) / ln(d_i / d_{i-1})

Linear convergence gives p ~= 1, Newton p ~= 2, secant p ~= golden ratio
"""

import math
from typing import Iterable, List


NAN = float('nan')


def convergence_rate(d_prev: float, d_curr: float, d_next: float) -> float:
	"""
	:param d_prev: |x_{i-1} - x_{i-2}|
	:param d_curr: |x_i - x_{i-1}|
	:param d_next: |x_{i+1} - x_i|
	:return: estimated order, or NaN if it can't be estimated (never throws)
	"""

	try:
		ratio_next = d_next / d_curr
		ratio_prev = d_curr / d_prev
	except ZeroDivisionError:
		return NAN

	# Also catches NaN, since comparisons with NaN are false
	if not (0.0 < ratio_next < math.inf) or not (0.0 < ratio_prev < math.inf):
		return NAN

	denom = math.log(ratio_prev)
	if denom == 0.0:
		return NAN

	return math.log(ratio_next) / denom


def estimate_rate(x_iminus2: float, x_iminus1: float, x_i: float, x_iplus1: float) -> float:
	"""Estimate convergence order from 3 consecutive iterates plus the next one"""
	return convergence_rate(
		d_prev=abs(x_iminus1 - x_iminus2),
		d_curr=abs(x_i - x_iminus1),
		d_next=abs(x_iplus1 - x_i),
	)


def rate_history(xs: Iterable[float]) -> List[float]:
	"""
	Rate estimate for every entry of an iterate sequence, after the fact

	Entry i uses xs[i-2 : i+2], so the first 2 entries and the last one are NaN

	:return: list the same length as xs
	"""
	xs = [float(x) for x in xs]
	rates = [NAN] * len(xs)
	for i in range(2, len(xs) - 1):
		rates[i] = estimate_rate(xs[i - 2], xs[i - 1], xs[i], xs[i + 1])
	return rates


_unit_tests = []


def _test_known_orders():
	from unit_test import unit_test

	# e_{n+1} = 0.5 * e_n: linear
	xs = [2.0 + 0.5 ** n for n in range(1, 12)]
	for rate in rate_history(xs)[2:-1]:
		unit_test.test_approx_equal(rate, 1.0, eps=1e-6)

	# e_{n+1} = e_n^2: quadratic
	# (differences only approximate the error, so this is only ~2 once the error is small)
	errs = [0.1]
	for _ in range(4):
		errs.append(errs[-1] ** 2)
	rates = rate_history(errs)
	unit_test.test_in_range(rates[2], (1.9, 2.2), name='rates[2]')
	unit_test.test_in_range(rates[3], (1.95, 2.05), name='rates[3]')


_unit_tests.append(_test_known_orders)


def _test_undefined():
	# Zero differences
	assert math.isnan(convergence_rate(0.0, 1.0, 1.0))
	assert math.isnan(convergence_rate(1.0, 0.0, 1.0))
	assert math.isnan(convergence_rate(1.0, 1.0, 0.0))

	# d_curr == d_prev, so denominator log is 0
	assert math.isnan(convergence_rate(0.5, 0.5, 0.25))

	# Non-finite input
	assert math.isnan(convergence_rate(math.nan, 0.5, 0.25))
	assert math.isnan(convergence_rate(1.0, 0.5, math.inf))
	assert math.isnan(estimate_rate(1.0, 2.0, math.nan, 3.0))

	# Negative distances can't happen with abs(), but shouldn't throw either
	assert math.isnan(convergence_rate(-1.0, 0.5, 0.25))


_unit_tests.append(_test_undefined)


def _test_rate_history_alignment():
	for n in range(0, 6):
		xs = [1.0 / (k + 1) for k in range(n)]
		rates = rate_history(xs)
		assert len(rates) == len(xs)
		assert all(math.isnan(r) for r in rates[:2])
		if n:
			assert math.isnan(rates[-1])


_unit_tests.append(_test_rate_history_alignment)


def test(verbose=False):
	from unit_test import unit_test
	return unit_test.run_unit_tests(_unit_tests, verbose=verbose)


def main(args):
	test(verbose=args.verbose)
