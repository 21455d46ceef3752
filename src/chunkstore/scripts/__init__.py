# Script package
