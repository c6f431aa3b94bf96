from setuptools import setup, find_packages

setup(
    name="zlmpy",
    version="0.1.0",
    description="Hurdle models for zero-inflated single-cell assay data in Python",
    long_description="""zlmpy fits hurdle (zero-inflated) regression models gene by gene: a logistic regression for whether a measurement is positive and a linear regression for its level when positive. Wald and likelihood ratio tests on both parts are combined into a single hurdle test per gene, optionally in parallel with joblib.""",
    author="zlmpy Team",
    author_email="",
    url="",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "pandas",
        "scipy",
        "statsmodels>=0.14",
        "patsy",
        "anndata",
        "joblib",
        "tqdm"
    ],
    extras_require={
        "test": ["pytest"]
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering :: Bio-Informatics"
    ],
    license="MIT",
    python_requires=">=3.9"
)
