"""Write-path engine moving tabular row partitions into a property graph."""
