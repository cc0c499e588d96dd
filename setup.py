import os
from setuptools import setup


with open('README.md', 'r') as f:
	long_description = f.read()

setup(name='krylovmor',
	version = '0.1',
	description = 'Krylov Subspace Model Order Reduction',
	long_description = long_description,
	long_description_content_type = 'text/markdown', 
	packages = ['krylovmor',],
	install_requires = [
		'numpy', 
		'scipy', 
		'iterprinter',
		],
	extras_require = {
		'test': ['pytest'],
		},
	python_requires='>=3.6',
	)
