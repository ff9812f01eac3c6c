#!/usr/bin/env python3

import inspect
import math
import numbers
from typing import Callable, Union

import numpy as np


_NUMERIC_RETURN_TYPES = (int, float, np.floating, np.integer, numbers.Real)

_NON_NUMERIC_NAMES = {'None', 'str', 'bytes', 'complex', 'list', 'tuple', 'dict', 'set'}


def _positional_arity(sig: inspect.Signature):
	"""
	:return: (min, max) number of positional args; max is None for *args
	"""
	n_min = 0
	n_max = 0
	for param in sig.parameters.values():
		if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
			n_max += 1
			if param.default is inspect.Parameter.empty:
				n_min += 1
		elif param.kind == inspect.Parameter.VAR_POSITIONAL:
			n_max = None
		elif param.kind == inspect.Parameter.KEYWORD_ONLY and param.default is inspect.Parameter.empty:
			# Required keyword-only arg, so f(x) can never work
			return n_min, -1

	return n_min, n_max


def _is_numeric_annotation(annotation) -> bool:
	if annotation is inspect.Signature.empty:
		return True

	if annotation is None:
		return False

	# String annotations (from __future__ import annotations) - can only go by the name
	if isinstance(annotation, str):
		return annotation not in _NON_NUMERIC_NAMES

	if isinstance(annotation, type):
		return issubclass(annotation, _NUMERIC_RETURN_TYPES)

	# Union, TypeVar etc - give it the benefit of the doubt
	return True


def check_scalar_function(f: Callable[[float], float]) -> None:
	"""Check that f can be called as f(x) and (as far as can be told without calling it) returns a real number

	This is structural only - nothing gets evaluated

	:raises: TypeError if f is not a single-argument numeric function
	"""

	if not callable(f):
		raise TypeError('Expected a function, got %s' % type(f).__name__)

	if isinstance(f, np.ufunc):
		if f.nin != 1 or f.nout != 1:
			raise TypeError('ufunc %s must take 1 input and give 1 output (has %i, %i)' % (f.__name__, f.nin, f.nout))
		return

	try:
		sig = inspect.signature(f)
	except (TypeError, ValueError):
		# Some builtins have no signature available - nothing more we can check
		return

	n_min, n_max = _positional_arity(sig)

	if n_max == -1:
		raise TypeError('%s has required keyword-only arguments' % getattr(f, '__name__', repr(f)))

	if n_min > 1 or (n_max is not None and n_max < 1):
		raise TypeError('%s must take exactly 1 argument, signature is %s' % (getattr(f, '__name__', repr(f)), sig))

	if not _is_numeric_annotation(sig.return_annotation):
		raise TypeError('%s must return a real number, annotated as returning %s' % (
			getattr(f, '__name__', repr(f)), sig.return_annotation))


def check_real(x, name='x') -> None:
	if isinstance(x, (bool, np.bool_)) or not isinstance(x, (numbers.Real, np.floating, np.integer)):
		raise TypeError('%s must be a real number, got %s' % (name, type(x).__name__))


def float_type(x):
	"""Floating point type matching x (float64 for ints & Python floats)"""
	dtype = np.asarray(x).dtype
	if not np.issubdtype(dtype, np.floating):
		return np.float64
	return dtype.type


def step_size(x):
	"""
	Central difference step for x: sqrt(machine epsilon) of its float type

	Total error is roughly O(h^2) truncation + O(eps/h) rounding; this step doesn't adapt to f at all
	"""
	ftype = float_type(x)
	return ftype(math.sqrt(np.finfo(ftype).eps))


def _central_difference(f: Callable[[float], float], x):
	ftype = float_type(x)
	x = ftype(x)
	h = step_size(x)
	with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
		return (ftype(f(x + h)) - ftype(f(x - h))) / (2 * h)


def derivative(f: Callable[[float], float], x):
	"""
	Estimate f'(x) by central difference

	:param f: function of a single real argument
	:param x: point to evaluate derivative at; its float type sets the step size
	:raises: TypeError if f isn't a single-argument numeric function, or x isn't real (before f is ever called)
	"""
	check_scalar_function(f)
	check_real(x)
	return _central_difference(f, x)


_unit_tests = []


def _test_derivative_square():
	from unit_test import unit_test

	def f(x):
		return x * x

	eps = np.finfo(np.float64).eps
	unit_test.test_approx_equal(derivative(f, 1.0), 2.0, eps=10.0 * math.sqrt(eps))

	# Also a plain integer point
	unit_test.test_approx_equal(derivative(f, 1), 2.0, eps=10.0 * math.sqrt(eps))


_unit_tests.append(_test_derivative_square)


def _test_derivative_functions():
	from unit_test import unit_test

	def f2(x):
		return 2 * x * x + 3 * x

	unit_test.test_approx_equal(derivative(f2, 0.5), 5.0, eps=1e-6)
	unit_test.test_approx_equal(derivative(math.sin, 0.0), 1.0, eps=1e-6)
	unit_test.test_approx_equal(derivative(np.exp, 1.0), math.e, eps=1e-6)
	unit_test.test_approx_equal(derivative(lambda x: math.exp(-x) - x, 0.6), -math.exp(-0.6) - 1.0, eps=1e-6)


_unit_tests.append(_test_derivative_functions)


def _test_derivative_float32():
	from unit_test import unit_test

	x = np.float32(1.0)
	h = step_size(x)
	assert isinstance(h, np.float32)
	unit_test.test_approx_equal(float(h), math.sqrt(np.finfo(np.float32).eps), rel=True, eps=1e-6)

	d = derivative(lambda v: v * v, x)
	assert isinstance(d, np.float32)
	unit_test.test_approx_equal(float(d), 2.0, eps=1e-2)


_unit_tests.append(_test_derivative_float32)


def _test_derivative_degenerate():
	# Division by zero or out of domain shouldn't throw - result is just inf/nan

	def f_sqrt(x):
		return np.sqrt(x)

	assert math.isnan(derivative(f_sqrt, -1.0))

	def f_inf(x):
		return np.float64(1.0) / np.float64(0.0) if x > 0 else 0.0

	with np.errstate(divide='ignore'):
		assert math.isinf(derivative(f_inf, 0.0))


_unit_tests.append(_test_derivative_degenerate)


def _test_structural_check():
	from unit_test import unit_test

	calls = []

	def f_two_args(x, y):
		calls.append((x, y))
		return x + y

	def f_kwonly(x, *, scale):
		calls.append(x)
		return x * scale

	def f_str(x) -> str:
		calls.append(x)
		return str(x)

	def f_none():
		calls.append(None)
		return 0.0

	def f_void(x) -> None:
		calls.append(x)

	for f in [f_two_args, f_kwonly, f_str, f_none, f_void, np.add, 'not a function']:
		unit_test.test_threw(derivative, f, 1.0, exc_type=TypeError)

	# Non-real point
	unit_test.test_threw(derivative, math.sin, 'x', exc_type=TypeError)
	unit_test.test_threw(derivative, math.sin, 1j, exc_type=TypeError)
	unit_test.test_threw(derivative, math.sin, True, exc_type=TypeError)

	# None of these should have been called
	assert not calls

	# These are all fine
	def f_default(x, y=2.0) -> float:
		return x * y

	def f_varargs(*args):
		return args[0]

	def f_union(x) -> Union[float, np.ndarray]:
		return x

	def f_np(x) -> np.float64:
		return np.float64(x)

	check_scalar_function(f_default)
	check_scalar_function(f_union)
	check_scalar_function(f_np)
	check_scalar_function(f_varargs)
	check_scalar_function(np.sin)
	check_scalar_function(lambda x: x)


_unit_tests.append(_test_structural_check)


def test(verbose=False):
	from unit_test import unit_test
	return unit_test.run_unit_tests(_unit_tests, verbose=verbose)


def main(args):
	def f1(x):
		return x * x

	def f2(x):
		return 2 * x * x + 3 * x

	print('d/dx x^2 at x=1: %.15g' % derivative(f1, 1.))
	print('d/dx 2x^2 + 3x at x=0.5: %.15g' % derivative(f2, 1.0 / 2.0))
