#!/usr/bin/env python3

import argparse
import os
import sys
from dataclasses import dataclass, field
from typing import Callable, Dict, Any, List, Optional, TextIO, Iterable

import numpy as np
from matplotlib import pyplot as plt

from rootfinding.solvers import SolverResult, fixed_point, newton, secant, bisection, DEFAULT_EPS
from utils.utils import to_pretty_str


NAME_WIDTH = 24
NUM_WIDTH = 25

HEADER_COLUMNS = ['i', 'x_i', '|x_i - x_{i - 1}|', 'rate']


@dataclass
class Problem:
	"""
	One solver run for the report

	solver is called as solver(func, **kwargs)
	"""
	name: str
	solver: Callable[..., SolverResult]
	func: Callable[[float], float]
	kwargs: Dict[str, Any] = field(default_factory=dict)
	filename: Optional[str] = None

	def run(self) -> SolverResult:
		return self.solver(self.func, **self.kwargs)

	def title(self) -> str:
		if self.solver is fixed_point:
			goal = 'fixed points'
		else:
			goal = 'roots'

		args = [
			'%s = %s' % (_TITLE_NAMES.get(k, k), _fmt_num(v))
			for k, v in self.kwargs.items() if k not in _HIDDEN_KWARGS]

		if len(args) > 1:
			args = ', '.join(args[:-1]) + ' and ' + args[-1]
		else:
			args = ''.join(args)

		return "Getting the %s of '%s' given %s" % (goal, self.name, args)


# Solver options that don't describe the problem itself
_HIDDEN_KWARGS = {'max_num_iter', 'throw_if_failed_converge', 'verbose'}

# Names as they appear in the table headers
_TITLE_NAMES = {'x0': 'x_0', 'x1': 'x_1', 'num_iter': 'numiters'}


def _fmt_num(val) -> str:
	if isinstance(val, (int, np.integer)) and not isinstance(val, bool):
		return str(val)
	return '%.15e' % val


def _cell(val, width: int) -> str:
	if isinstance(val, str):
		s = val
	else:
		s = _fmt_num(val)
	return s.ljust(width)


def format_table(result: SolverResult, title: Optional[str]=None) -> str:
	"""
	Format result as a fixed-width table: iteration, iterate, distance from previous iterate, rate

	:param result: solver output
	:param title: optional line printed above the table
	:return: table, ending with 'END' line
	"""

	lines = []

	if title:
		lines.append(title)

	lines.append(''.join(_cell(col, NAME_WIDTH) for col in HEADER_COLUMNS).rstrip())

	prev = None
	for n, (x, rate) in enumerate(zip(result.iterates, result.rates)):
		diff = '' if prev is None else abs(x - prev)
		lines.append(''.join([
			_cell(n, NUM_WIDTH),
			_cell(x, NUM_WIDTH),
			_cell(diff, NUM_WIDTH),
			_cell(rate, NUM_WIDTH),
		]).rstrip())
		prev = x

	lines.append('END')
	return '\n'.join(lines) + '\n'


def write_table(stream: TextIO, result: SolverResult, title: Optional[str]=None) -> None:
	stream.write(format_table(result, title=title))


def run_problems(problems: Iterable[Problem], out_dir: Optional[str]=None, verbose=False) -> List[SolverResult]:
	"""
	Run every problem, and write each table to its file (appending), or to stdout if no out_dir

	:return: results, in same order as problems
	"""

	if out_dir is not None:
		os.makedirs(out_dir, exist_ok=True)

	results = []

	for problem in problems:
		result = problem.run()
		results.append(result)
		title = problem.title()

		if out_dir is not None and problem.filename:
			path = os.path.join(out_dir, problem.filename)
			with open(path, 'a') as f:
				write_table(f, result, title=title)
			if verbose:
				print('Wrote %s' % path)
		else:
			write_table(sys.stdout, result, title=title)

		if verbose:
			print('%s: %s after %i iterations' % (problem.name, to_pretty_str(result.final, num_decimals=12), result.num_iter))

	return results


"""
Example problems

fixed point:
	g1(x) = (x^2 + 2) / 3      fixed points 1 & 2 - linear convergence to 1
	g2(x) = sqrt(3x - 2)       NaN as soon as 3x - 2 < 0
	g3(x) = 3 - 2/x
	g4(x) = (x^2 - 2) / (2x - 3)  (this is Newton's method on f1)

roots:
	f1(x) = x^2 - 3x + 2       roots 1 & 2
	f2(x) = x^3 - 2x - 5
	f3(x) = e^-x - x
	f4(x) = x sin(x) - 1
	f5(x) = x^3 - 3x^2 + 3x - 1 = (x - 1)^3
"""


def g1(x):
	return (x * x + 2) / 3


def g2(x):
	return np.sqrt(3 * x - 2)


def g3(x):
	return 3 - (2 / x)


def g4(x):
	return (x * x - 2) / (2 * x - 3)


def f1(x):
	return x * x - 3 * x + 2


def f2(x):
	return x * x * x - 2 * x - 5


def f3(x):
	return np.exp(-x) - x


def f4(x):
	return np.sin(x) * x - 1


def f5(x):
	return x * x * x - 3 * x * x + 3 * x - 1


def fixed_point_problems(x0: float, abstol: float, max_num_iter: Optional[int]) -> List[Problem]:
	cap = dict(max_num_iter=max_num_iter, throw_if_failed_converge=False)
	return [
		Problem(name, fixed_point, g, dict(x0=x0, abstol=abstol, **cap), filename)
		for name, g, filename in [
			('g1', g1, 'fpg1.txt'),
			('g2', g2, 'fpg2.txt'),
			('g3', g3, 'fpg3.txt'),
			('g4', g4, 'fpg4.txt'),
		]
	]


def newton_problems(abstol: float, max_num_iter: Optional[int]) -> List[Problem]:
	cap = dict(max_num_iter=max_num_iter, throw_if_failed_converge=False)
	funcs = [f1, f2, f3, f4, f5]
	x0s = [2.1, 2.5, 0.6, 0.9, 0.5]
	return [
		Problem('f%i' % (n + 1), newton, f, dict(x0=x0, abstol=abstol, **cap), 'newtonf%i.txt' % (n + 1))
		for n, (f, x0) in enumerate(zip(funcs, x0s))
	]


def secant_problems(abstol: float, max_num_iter: Optional[int]) -> List[Problem]:
	cap = dict(max_num_iter=max_num_iter, throw_if_failed_converge=False)
	funcs = [f1, f2, f3, f4, f5]
	x0s = [2.5, -15, -1, 0, -4]
	x1s = [2.1, -12.5, -0.5, 0.3, -3]
	return [
		Problem('f%i' % (n + 1), secant, f, dict(x0=x0, x1=x1, abstol=abstol, **cap), 'secantf%i.txt' % (n + 1))
		for n, (f, x0, x1) in enumerate(zip(funcs, x0s, x1s))
	]


def bisection_problems(abstol: float, num_iter: int) -> List[Problem]:
	funcs = [f1, f2, f3, f4, f5]
	lower = [1.5, 1, -1, 0, 0.5]
	upper = [2.5, 3, 2, 2, 1.5]
	return [
		Problem('f%i' % (n + 1), bisection, f, dict(a=a, b=b, num_iter=num_iter, abstol=abstol), 'bisectionf%i.txt' % (n + 1))
		for n, (f, a, b) in enumerate(zip(funcs, lower, upper))
	]


def all_problems(args) -> Dict[str, List[Problem]]:
	return {
		'fixed_point': fixed_point_problems(x0=args.x0, abstol=args.abstol, max_num_iter=args.max_iter),
		'newton': newton_problems(abstol=args.abstol, max_num_iter=args.max_iter),
		'secant': secant_problems(abstol=args.abstol, max_num_iter=args.max_iter),
		'bisection': bisection_problems(abstol=args.abstol, num_iter=args.num_iter),
	}


def get_parser():
	parser = argparse.ArgumentParser(add_help=False)
	parser.add_argument('--abstol', type=float, default=DEFAULT_EPS, help='Absolute tolerance (default %(default)g)')
	parser.add_argument('--x0', type=float, default=0.0, help='Initial estimate for fixed point problems (default %(default)g)')
	parser.add_argument('--num-iter', type=int, default=50, help='Bisection iterations (default %(default)i)')
	parser.add_argument('--max-iter', type=int, default=1000, help='Iteration limit for other solvers (default %(default)i)')
	parser.add_argument('--out-dir', default=None, help='Write tables into this directory instead of printing them')
	parser.add_argument('--solver', choices=['fixed_point', 'newton', 'secant', 'bisection'], action='append', help='Only run this solver (may be given more than once)')
	return parser


def _selected(args) -> Dict[str, List[Problem]]:
	problems = all_problems(args)
	if args.solver:
		problems = {k: v for k, v in problems.items() if k in args.solver}
	return problems


def plot(args):

	for solver_name, problems in _selected(args).items():

		fig = plt.figure()
		plt.suptitle(solver_name)

		ax_diff = fig.add_subplot(2, 1, 1)
		ax_rate = fig.add_subplot(2, 1, 2, sharex=ax_diff)

		for problem in problems:
			result = problem.run()
			x = np.asarray(result.iterates, dtype=float)
			n = np.arange(1, len(x))
			with np.errstate(invalid='ignore'):
				diff = np.abs(np.diff(x))

			line, = ax_diff.semilogy(n, diff, '.-', label='%s (%i iter)' % (problem.name, result.num_iter))
			ax_rate.plot(np.arange(len(x)), result.rates, '.-', color=line.get_color(), label=problem.name)

		ax_diff.set_ylabel('|x_i - x_{i - 1}|')
		ax_rate.set_ylabel('Estimated rate')
		ax_rate.set_xlabel('Iteration')

		for ax in [ax_diff, ax_rate]:
			ax.grid()
			ax.legend()

	plt.show()


_unit_tests = []


def _test_format_table():
	from unit_test import unit_test

	result = newton(f1, 2.1, 5e-7)
	lines = format_table(result, title='title line').splitlines()

	unit_test.test_equal(lines[0], 'title line')
	unit_test.test_equal(lines[1].split(), ['i', 'x_i', '|x_i', '-', 'x_{i', '-', '1}|', 'rate'])
	unit_test.test_equal(lines[-1], 'END')
	unit_test.test_equal(len(lines), result.num_iter + 3)

	# First row has no difference
	row0 = lines[2]
	unit_test.test_equal(row0[:NUM_WIDTH].strip(), '0')
	unit_test.test_equal(row0[NUM_WIDTH:2 * NUM_WIDTH].strip(), '%.15e' % result.iterates[0])
	unit_test.test_equal(row0[2 * NUM_WIDTH:3 * NUM_WIDTH].strip(), '')
	unit_test.test_equal(row0[3 * NUM_WIDTH:].strip(), 'nan')

	row2 = lines[4].split()
	unit_test.test_equal(row2[0], '2')
	unit_test.test_approx_equal(float(row2[1]), result.iterates[2], eps=1e-14)
	unit_test.test_approx_equal(float(row2[2]), abs(result.iterates[2] - result.iterates[1]), rel=True, eps=1e-12)
	unit_test.test_approx_equal(float(row2[3]), result.rates[2], rel=True, eps=1e-12)


_unit_tests.append(_test_format_table)


def _test_title():
	from unit_test import unit_test

	problem = fixed_point_problems(x0=0.0, abstol=5e-7, max_num_iter=100)[0]
	unit_test.test_equal(
		problem.title(),
		"Getting the fixed points of 'g1' given x_0 = 0.000000000000000e+00 and abstol = 5.000000000000000e-07")

	problem = bisection_problems(abstol=5e-7, num_iter=20)[0]
	unit_test.test_equal(
		problem.title(),
		"Getting the roots of 'f1' given a = 1.500000000000000e+00, b = 2.500000000000000e+00, numiters = 20 "
		"and abstol = 5.000000000000000e-07")

	problem = secant_problems(abstol=5e-7, max_num_iter=None)[0]
	unit_test.test_equal(
		problem.title(),
		"Getting the roots of 'f1' given x_0 = 2.500000000000000e+00, x_1 = 2.100000000000000e+00 "
		"and abstol = 5.000000000000000e-07")


_unit_tests.append(_test_title)


def _test_run_problems():
	import tempfile

	args = get_parser().parse_args(['--max-iter', '200'])

	with tempfile.TemporaryDirectory() as out_dir:
		problems = all_problems(args)
		for solver_problems in problems.values():
			results = run_problems(solver_problems, out_dir=out_dir)
			assert len(results) == len(solver_problems)
			for result in results:
				assert len(result.iterates) == len(result.rates) == result.num_iter
				assert result.num_iter <= 200

		assert sorted(os.listdir(out_dir)) == sorted(
			p.filename for solver_problems in problems.values() for p in solver_problems)

		# Files are appended to, not overwritten
		run_problems(problems['newton'][:1], out_dir=out_dir)
		with open(os.path.join(out_dir, 'newtonf1.txt')) as f:
			contents = f.read()
		assert contents.count('END\n') == 2
		assert contents.startswith("Getting the roots of 'f1' given x_0 = 2.1")


_unit_tests.append(_test_run_problems)


def _test_example_results():
	from unit_test import unit_test

	args = get_parser().parse_args([])
	problems = all_problems(args)

	fp = run_problems(problems['fixed_point'], out_dir=None)
	unit_test.test_approx_equal(fp[0].final, 1.0, eps=1e-5)  # g1
	assert np.isnan(fp[1].final)  # g2 out of domain at x0 = 0
	unit_test.test_approx_equal(fp[2].final, 2.0, eps=1e-5)  # g3: 2/0 = inf, then 3 - 2/inf = 3, then towards 2
	unit_test.test_approx_equal(fp[3].final, 1.0, eps=1e-6)  # g4

	for result in run_problems(problems['bisection'], out_dir=None):
		assert result.num_iter <= args.num_iter


_unit_tests.append(_test_example_results)


def test(verbose=False):
	from unit_test import unit_test
	return unit_test.run_unit_tests(_unit_tests, verbose=verbose)


def main(args):
	for solver_name, problems in _selected(args).items():
		if args.verbose:
			print('')
			print(solver_name)
		run_problems(problems, out_dir=args.out_dir, verbose=args.verbose)
