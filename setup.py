from setuptools import setup, find_packages

setup(
  name='nestdecomp',
  version=0.1,
  description='Search nested-domain process layouts across node counts',
  packages=find_packages(exclude=['tests']),
  python_requires='>=3.11',
  install_requires=[
    'numpy', 'pandas', 'joblib', 'tqdm', 'h5py'
  ],
  extras_require={
    'test': ['pytest'],
  },
  entry_points={
    'console_scripts': ['nestdecomp=nestdecomp.cli:main'],
  },
)
