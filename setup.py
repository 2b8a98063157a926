from setuptools import find_packages, setup

setup(
    name="LibMH",
    version="0.1.0",
    description="Metropolis-Hastings MCMC sampling over continuous parameter vectors",
    packages=find_packages(include=["LibMH", "LibMH.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.22",
        "scipy>=1.10",
        "pandas",
        "tqdm",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
