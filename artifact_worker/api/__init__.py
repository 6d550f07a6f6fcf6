"""HTTP trigger surface for the artifact worker."""
