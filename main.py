#!/usr/bin/env python3

import argparse
import importlib
import inspect
import sys


MODULES = [
	'rootfinding.convergence',
	'rootfinding.derivative',
	'rootfinding.report',
	'rootfinding.solvers',
	'utils.approx_equal',
	'utils.utils',
]

# Order to run unit tests with "all --test"; later modules depend on earlier ones, so stop at first failure
TEST_ORDER = [
	'utils.approx_equal',  # unit test framework depends on it
	'utils.utils',
	'rootfinding.convergence',
	'rootfinding.derivative',
	'rootfinding.solvers',
	'rootfinding.report',
]


def parse_args(argv=None):
	if argv is None:
		argv = sys.argv[1:]

	parser = argparse.ArgumentParser(description='Run a module: its main(), unit tests, or plot()')

	test_parser = argparse.ArgumentParser(add_help=False)
	test_parser.add_argument('-t', '--test', action='store_true', help="run unit tests")
	test_parser.add_argument('-v', '--verbose', action='store_true', help="verbose output")

	plot_parser = argparse.ArgumentParser(add_help=False)
	plot_parser.add_argument('-p', '--plot', action='store_true', help="run plot() function")

	subparsers = parser.add_subparsers(dest='module_name')

	subparsers.add_parser('all', parents=[test_parser], help='unit tests of every module (requires --test)')

	for module_name in MODULES:

		# If a module name isn't present in argv, then we know its subparser details won't be used anyway,
		# so just add an empty subparser instead of importing the module (which pulls in matplotlib etc)
		if module_name not in argv:
			subparsers.add_parser(module_name)
			continue

		module = importlib.import_module(module_name)

		parents = []

		if hasattr(module, 'test'):
			parents.append(test_parser)

		if hasattr(module, 'plot'):
			parents.append(plot_parser)

		if hasattr(module, 'get_parser'):
			parents.append(module.get_parser())

		subparsers.add_parser(module_name, parents=parents)

	args = parser.parse_args(argv)

	if args.module_name is None:
		parser.print_help()
		parser.exit(2)

	return args


def test(mod, module_name, verbose) -> int:

	if not hasattr(mod, 'test'):
		print("Error: module '%s' has no test()" % module_name)
		return -1

	kwargs = dict()

	test_args = inspect.getfullargspec(mod.test).args

	if 'verbose' in test_args:
		test_args.remove('verbose')
		kwargs['verbose'] = verbose

	if test_args:
		print('WARNING: unexpected args in test() function: %s' % test_args)

	return 0 if mod.test(**kwargs) else 1


def test_all(verbose) -> int:
	separator = '=' * 40

	print('Running %i unit test suites...' % len(TEST_ORDER))

	for module_name in TEST_ORDER:
		print('')
		print(separator)
		print("Unit test suite: %s" % module_name)
		print(separator)

		if test(importlib.import_module(module_name), module_name=module_name, verbose=verbose):
			print('')
			print('Test suite failed: %s' % module_name)
			return 1

	print('')
	print('All %i test suites passed!' % len(TEST_ORDER))
	return 0


def plot(mod, module_name, module_args):
	if hasattr(mod, 'plot'):
		mod.plot(module_args)
	else:
		print("Error: module '%s' has no plot()" % module_name)
		return -1


def module_main(mod, module_name, module_args):
	if hasattr(mod, 'main'):
		ret = mod.main(module_args)
		if ret:
			print('Returned %s' % ret)
		return ret
	else:
		print("Error: module '%s' has no main()" % module_name)
		return -1


def main(argv=None):
	args = parse_args(argv)

	if 'test' not in args:
		args.test = False

	if 'plot' not in args:
		args.plot = False

	if 'verbose' not in args:
		args.verbose = False

	if args.test and args.plot:
		print('ERROR: cannot give both --test and --plot')
		return -1

	if args.module_name == 'all':
		if not args.test:
			print('ERROR: "all" only supports --test')
			return -1
		return test_all(verbose=args.verbose)

	mod = importlib.import_module(args.module_name)

	if args.test:
		return test(mod, module_name=args.module_name, verbose=args.verbose)
	elif args.plot:
		return plot(mod, module_name=args.module_name, module_args=args)
	else:
		return module_main(mod, module_name=args.module_name, module_args=args)


if __name__ == "__main__":
	ret = main()
	exit(ret)
