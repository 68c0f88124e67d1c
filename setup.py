from setuptools import setup, find_packages
import os


def _get_long_description():
    """Get long description from README file with fallback"""
    readme_files = ['README.md', 'docs/README.md']
    for readme_file in readme_files:
        if os.path.exists(readme_file):
            with open(readme_file, 'r', encoding='utf-8') as f:
                return f.read()
    return 'Real-time pitch, intonation and harmonic analysis engine'


setup(
    name='intonation_lab',
    version='1.0.0',
    author='Intonation Lab Team',
    description='Real-time pitch, intonation and harmonic analysis engine',
    long_description=_get_long_description(),
    long_description_content_type='text/markdown',
    packages=find_packages(where='src'),
    package_dir={'': 'src'},
    install_requires=[
        # Core numerical and audio processing
        'numpy>=1.24',
        'scipy>=1.10',
        'soundfile>=0.12',
        'librosa>=0.10',

        # Configuration
        'pyyaml>=6.0,<7.0',
    ],
    extras_require={
        'dev': [
            'pytest>=7.4',
            'pytest-cov>=4.1',
            'black>=23.7',
            'isort>=5.12',
        ],
    },
    python_requires='>=3.8',
    zip_safe=False,
)
