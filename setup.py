# Python setuptools setup for bpf-profile

from setuptools import setup

setup(name = 'bpf-profile',
      version = '0.6',
      description = 'BPF VM instruction trace to Callgrind profile converter',
      license = 'GPLv2+',
      python_requires = '>=3.7',
      py_modules = ['bpf_calls', 'bpf_config', 'bpf_errors', 'bpf_generate',
          'bpf_output', 'bpf_profile', 'bpf_resolver', 'bpf_trace'],
      scripts = ['bpf_profile.py'],
      extras_require = {
          'test': ['pytest'],
      },
)
