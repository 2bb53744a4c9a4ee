from nuspec_builder.cli import main

main()
