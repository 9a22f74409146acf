from wavebuild.pipeline import main

main()
