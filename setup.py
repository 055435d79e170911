from setuptools import setup, find_packages

with open("README") as f:
    long_description = f.read()

setup(name='tweetkit',
      version='0.1.0',
      description="OAuth signing, tweet streams and paginators for the Twitter API",
      long_description=long_description,
      long_description_content_type="text/markdown",
      python_requires=">=3.6",
      # Get strings from http://pypi.python.org/pypi?%3Aaction=list_classifiers
      classifiers=[
          "Development Status :: 4 - Beta",
          "Intended Audience :: Developers",
          "Natural Language :: English",
          "Operating System :: OS Independent",
          "Programming Language :: Python :: 3",
          "Programming Language :: Python :: 3.8",
          "Programming Language :: Python :: 3.9",
          "Programming Language :: Python :: 3.10",
          "Programming Language :: Python :: 3.11",
          "Programming Language :: Python :: Implementation :: CPython",
          "Topic :: Internet :: WWW/HTTP",
          "Topic :: Software Development :: Libraries",
          "License :: OSI Approved :: MIT License",
          ],
      keywords='twitter, oauth, streaming, pagination',
      license='MIT License',
      packages=find_packages(exclude=['ez_setup', 'examples', 'tests']),
      include_package_data=True,
      zip_safe=True,
      install_requires=["requests", "certifi", "urllib3"],
      extras_require={
          "test": ["pytest"],
      },
      )
