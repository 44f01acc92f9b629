import os

from setuptools import find_packages, setup


# Python 以外のファイルを含める
def package_files(directory, strip_leading):
    paths = []
    for (path, directories, filenames) in os.walk(directory):
        for filename in filenames:
            package_file = os.path.join(path, filename)
            paths.append(package_file[len(strip_leading):])
    return paths


templates = package_files('robocar_rc/templates', 'robocar_rc/')

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(name='robocar-rc',
      version="1.0.0",
      long_description=long_description,
      long_description_content_type='text/markdown',
      description='RC receiver serial telemetry to MQTT bridge for robocars.',
      license='MIT',
      entry_points={
          'console_scripts': [
              'robocar-rc=robocar_rc.management.base:execute_from_command_line',
          ],
      },
      python_requires='>=3.8',
      install_requires=[
          'docopt',
          'PrettyTable',
          'paho-mqtt>=2.0',
          'pyfiglet',
          'pyserial',
      ],
      extras_require={
          'dev': [
              'pytest',
              'pytest-cov',
          ],
      },
      package_data={
          'robocar_rc': templates,
      },
      include_package_data=True,
      classifiers=[
          'Development Status :: 4 - Beta',
          'Intended Audience :: Developers',
          'License :: OSI Approved :: MIT License',
          'Programming Language :: Python :: 3',
      ],
      keywords='selfdriving cars donkeycar diyrobocars mqtt arduino',
      packages=find_packages(exclude=(['tests', 'docs', 'site', 'env'])),
    )
